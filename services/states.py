"""
Application lifecycle tables.

``status`` follows::

    submitted -> under_verification -> verified <-> document_requested
    (any pre-approval state) -> approved -> disbursed
    (any pre-approval state) -> rejected

``marketplace_status`` moves forward only:
pending -> distributed -> offers_open -> offer_selected.
"""
from __future__ import annotations

from services.exceptions import ConflictError

SUBMITTED = "submitted"
UNDER_VERIFICATION = "under_verification"
VERIFIED = "verified"
DOCUMENT_REQUESTED = "document_requested"
APPROVED = "approved"
DISBURSED = "disbursed"
REJECTED = "rejected"

PRE_APPROVAL_STATES = frozenset({SUBMITTED, UNDER_VERIFICATION, VERIFIED, DOCUMENT_REQUESTED})
TERMINAL_STATES = frozenset({DISBURSED, REJECTED})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    SUBMITTED: frozenset({UNDER_VERIFICATION, DOCUMENT_REQUESTED, APPROVED, REJECTED}),
    UNDER_VERIFICATION: frozenset({VERIFIED, DOCUMENT_REQUESTED, APPROVED, REJECTED}),
    VERIFIED: frozenset({DOCUMENT_REQUESTED, UNDER_VERIFICATION, APPROVED, REJECTED}),
    DOCUMENT_REQUESTED: frozenset({VERIFIED, UNDER_VERIFICATION, DOCUMENT_REQUESTED, APPROVED, REJECTED}),
    APPROVED: frozenset({DISBURSED}),
    DISBURSED: frozenset(),
    REJECTED: frozenset(),
}

MP_PENDING = "pending"
MP_DISTRIBUTED = "distributed"
MP_OFFERS_OPEN = "offers_open"
MP_OFFER_SELECTED = "offer_selected"

MARKETPLACE_ORDER = (MP_PENDING, MP_DISTRIBUTED, MP_OFFERS_OPEN, MP_OFFER_SELECTED)
OFFER_ACCEPTING_STATES = frozenset({MP_DISTRIBUTED, MP_OFFERS_OPEN})


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot move application from {current} to {target}",
            current_status=current,
            target_status=target,
        )


def advance_marketplace(current: str, target: str) -> str:
    """Return the later of the two marketplace states; it never moves backwards."""
    if MARKETPLACE_ORDER.index(target) > MARKETPLACE_ORDER.index(current):
        return target
    return current
