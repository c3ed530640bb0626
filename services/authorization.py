"""
Actor context and capability checks.

The auth collaborator hands the service an already-verified (actor id, role)
pair; this module decides what that role may do. Each workflow transition names
a ``Capability`` and calls ``require_capability`` before touching any row.
Row-level ownership (connector owns customer, banker's bank owns the
distribution) is checked afterwards by the transition itself.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from services.exceptions import AccessDeniedError


class Role(str, Enum):
    CONNECTOR = "connector"
    OPERATOR = "operator"
    BANKER = "banker"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Capability(str, Enum):
    SUBMIT_APPLICATION = "submit_application"
    ATTACH_DOCUMENT = "attach_document"
    VERIFY_DOCUMENT = "verify_document"
    UPDATE_STATUS = "update_status"
    REQUEST_DOCUMENTS = "request_documents"
    DISTRIBUTE = "distribute"
    VIEW_DISTRIBUTED = "view_distributed"
    SUBMIT_OFFER = "submit_offer"
    LIST_OFFERS = "list_offers"
    SELECT_OFFER = "select_offer"
    DISBURSE = "disburse"
    PAY_COMMISSION = "pay_commission"
    VIEW_COMMISSIONS = "view_commissions"
    REGISTER_CUSTOMER = "register_customer"
    VIEW_CUSTOMERS = "view_customers"
    MANAGE_BANKS = "manage_banks"
    VIEW_BANKS = "view_banks"


_ADMINS = frozenset({Role.ADMIN, Role.SUPER_ADMIN})

CAPABILITIES: dict[Capability, frozenset[Role]] = {
    Capability.SUBMIT_APPLICATION: frozenset({Role.CONNECTOR}),
    Capability.ATTACH_DOCUMENT: frozenset({Role.CONNECTOR, Role.OPERATOR}),
    Capability.VERIFY_DOCUMENT: frozenset({Role.OPERATOR}),
    Capability.UPDATE_STATUS: frozenset({Role.OPERATOR}),
    Capability.REQUEST_DOCUMENTS: frozenset({Role.BANKER, Role.OPERATOR}),
    Capability.DISTRIBUTE: frozenset({Role.OPERATOR}),
    Capability.VIEW_DISTRIBUTED: frozenset({Role.BANKER}),
    Capability.SUBMIT_OFFER: frozenset({Role.BANKER}),
    Capability.LIST_OFFERS: frozenset({Role.BANKER, Role.OPERATOR}) | _ADMINS,
    Capability.SELECT_OFFER: frozenset({Role.OPERATOR}),
    Capability.DISBURSE: frozenset({Role.BANKER}) | _ADMINS,
    Capability.PAY_COMMISSION: _ADMINS,
    Capability.VIEW_COMMISSIONS: frozenset({Role.CONNECTOR}) | _ADMINS,
    Capability.REGISTER_CUSTOMER: frozenset({Role.CONNECTOR}),
    Capability.VIEW_CUSTOMERS: frozenset({Role.CONNECTOR, Role.OPERATOR}) | _ADMINS,
    Capability.MANAGE_BANKS: _ADMINS,
    Capability.VIEW_BANKS: frozenset({Role.OPERATOR}) | _ADMINS,
}


@dataclass(frozen=True)
class ActorContext:
    actor_id: str
    role: Role
    source_address: str | None = None

    @classmethod
    def from_headers(cls, actor_id: str | None, role: str | None, source_address: str | None = None) -> "ActorContext":
        if not actor_id or not role:
            raise AccessDeniedError("Access denied")
        try:
            parsed = Role(role)
        except ValueError:
            raise AccessDeniedError("Access denied", role=role) from None
        return cls(actor_id=actor_id, role=parsed, source_address=source_address)

    @property
    def is_admin(self) -> bool:
        return self.role in _ADMINS


def can(actor: ActorContext, capability: Capability) -> bool:
    return actor.role in CAPABILITIES[capability]


def require_capability(actor: ActorContext, capability: Capability) -> None:
    if not can(actor, capability):
        raise AccessDeniedError(
            "Access denied", role=actor.role.value, capability=capability.value
        )
