from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from schemas.application import REQUEST_CONFIG


class DistributeRequest(BaseModel):
    bank_ids: list[str] = Field(default_factory=list)
    response_due_hours: Optional[int] = Field(None, gt=0, le=24 * 30)

    model_config = REQUEST_CONFIG


class OfferCreate(BaseModel):
    offered_amount: Decimal = Field(..., gt=0)
    interest_rate: Decimal = Field(..., gt=0, lt=100)
    tenure_months: int = Field(..., gt=0, le=480)
    processing_fee: Decimal = Field(Decimal("0"), ge=0)
    terms_conditions: Optional[str] = None
    special_features: Optional[str] = None
    remarks: Optional[str] = None

    model_config = REQUEST_CONFIG


class SelectOfferRequest(BaseModel):
    offer_id: str

    model_config = REQUEST_CONFIG


class DistributionBatchResult(BaseModel):
    application_id: str
    distribution_ids: list[str]
    distributed_bank_ids: list[str]
    skipped_bank_ids: list[str] = Field(default_factory=list)
    response_due_date: datetime
    marketplace_status: str

    @property
    def distributed_count(self) -> int:
        return len(self.distributed_bank_ids)


class ApprovalResult(BaseModel):
    application_id: str
    selected_offer_id: str
    approved_amount: Decimal
    approved_interest_rate: Decimal
    approved_tenure_months: int
    rejected_offer_ids: list[str] = Field(default_factory=list)
    commission_id: Optional[str] = None
