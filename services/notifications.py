"""
Best-effort outbound notifications.

The workflow hands ``(template, recipient, data)`` to a ``Notifier`` and moves
on. Delivery failures are logged and never turn into workflow failures.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger("marketplace.notifications")

TEMPLATES: dict[str, str] = {
    "application_submitted": "Loan Application Submitted - {application_number}",
    "documents_verified": "Documents Verified - {application_number}",
    "documents_requested": "Additional Documents Required - {application_number}",
    "application_distributed": "New Loan Application for Review - {application_number}",
    "offer_received": "New Offer Received - {application_number}",
    "offer_selected": "Loan Approved - {application_number}",
    "application_rejected": "Loan Application Update - {application_number}",
    "loan_disbursed": "Loan Disbursed - {application_number}",
    "commission_paid": "Commission Payment Processed - {payment_reference}",
}


class Notifier(Protocol):
    def send(self, template: str, recipient: str, subject: str, data: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: records the outbound message for the delivery gateway."""

    def send(self, template: str, recipient: str, subject: str, data: dict[str, Any]) -> None:
        logger.info(
            "notification queued",
            extra={"template": template, "recipient": recipient, "subject": subject},
        )


_notifier: Notifier = LoggingNotifier()


def set_notifier(notifier: Notifier) -> Notifier:
    """Swap the process-wide notifier; returns the previous one."""
    global _notifier
    previous, _notifier = _notifier, notifier
    return previous


def render_subject(template: str, data: dict[str, Any]) -> str:
    pattern = TEMPLATES.get(template)
    if pattern is None:
        raise KeyError(f"Unknown notification template: {template}")
    try:
        return pattern.format(**data)
    except KeyError:
        return pattern.split(" - ")[0]


def notify(template: str, recipient: str | None, data: dict[str, Any]) -> bool:
    """Send one notification; returns False (and logs) instead of raising."""
    if not recipient:
        logger.debug("notification skipped, no recipient", extra={"template": template})
        return False
    try:
        _notifier.send(template, recipient, render_subject(template, data), data)
    except Exception:
        logger.warning(
            "notification delivery failed",
            exc_info=True,
            extra={"template": template, "recipient": recipient},
        )
        return False
    return True
