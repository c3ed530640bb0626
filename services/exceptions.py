"""
Typed errors raised by the workflow services.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. Services raise them before their first write wherever the
check allows; anything raised later is undone by the surrounding unit of work.

    MarketplaceError
    +-- ValidationError         malformed or out-of-policy input
    +-- AccessDeniedError       role or ownership check failed
    +-- NotFoundError           entity absent or not visible to the caller
    +-- ConflictError           transition would break an invariant
    +-- NoEligibleRecordsError  batch operation found nothing to act on
"""
from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    code: str = "MARKETPLACE_ERROR"
    http_status: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": False, "code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(MarketplaceError):
    code = "VALIDATION_ERROR"
    http_status = 400


class AccessDeniedError(MarketplaceError):
    code = "ACCESS_DENIED"
    http_status = 403


class NotFoundError(MarketplaceError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: Any = None, message: str | None = None):
        super().__init__(message or f"{entity_type.replace('_', ' ').capitalize()} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictError(MarketplaceError):
    code = "CONFLICT"
    http_status = 409


class NoEligibleRecordsError(MarketplaceError):
    code = "NO_ELIGIBLE_RECORDS"
    http_status = 404
