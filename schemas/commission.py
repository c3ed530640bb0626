from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from schemas.application import REQUEST_CONFIG


class CommissionPayRequest(BaseModel):
    commission_ids: list[str] = Field(default_factory=list)
    payment_reference: str = ""
    payment_method: Optional[str] = None
    remarks: Optional[str] = None

    model_config = REQUEST_CONFIG


class PaymentResult(BaseModel):
    payment_id: str
    payment_reference: str
    paid_ids: list[str]
    skipped_ids: list[str] = Field(default_factory=list)
    total_amount: Decimal
    paid_at: datetime

    @property
    def paid_count(self) -> int:
        return len(self.paid_ids)


class CommissionSummary(BaseModel):
    connector_id: str
    earned_count: int = 0
    earned_amount: Decimal = Decimal("0")
    paid_count: int = 0
    paid_amount: Decimal = Decimal("0")
