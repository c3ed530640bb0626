from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

ApplicationStatus = Literal[
    "submitted",
    "under_verification",
    "verified",
    "document_requested",
    "approved",
    "disbursed",
    "rejected",
]
MarketplaceStatus = Literal["pending", "distributed", "offers_open", "offer_selected"]

# Accept both snake_case and camelCase request bodies
REQUEST_CONFIG = {"populate_by_name": True, "alias_generator": to_camel}


class ApplicationCreate(BaseModel):
    customer_id: str
    loan_category_id: str
    requested_amount: Decimal = Field(..., gt=0)
    purpose: Optional[str] = None
    monthly_income: Optional[Decimal] = Field(None, ge=0)
    employment_type: Optional[Literal["salaried", "self_employed", "business", "other"]] = None

    model_config = REQUEST_CONFIG


class StatusUpdate(BaseModel):
    status: Literal["under_verification", "verified", "rejected"]
    remarks: Optional[str] = None

    model_config = REQUEST_CONFIG


class DocumentRequest(BaseModel):
    documents: list[str] = Field(default_factory=list)

    model_config = REQUEST_CONFIG


class DisburseRequest(BaseModel):
    disbursement_amount: Decimal = Field(..., gt=0)
    transaction_reference: str = Field(..., min_length=1)
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    disbursement_date: Optional[datetime] = None
    remarks: Optional[str] = None

    model_config = REQUEST_CONFIG


class TransitionResult(BaseModel):
    application_id: str
    old_status: str
    new_status: str


class DisbursementResult(BaseModel):
    application_id: str
    application_number: str
    disbursed_amount: Decimal
    commission_id: Optional[str] = None
    commission_amount: Optional[Decimal] = None
    transaction_reference: str
