from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.application import REQUEST_CONFIG


class DocumentAttach(BaseModel):
    document_type_id: str
    storage_path: str = Field(..., min_length=1)
    file_name: Optional[str] = None

    model_config = REQUEST_CONFIG


class DocumentVerify(BaseModel):
    status: Literal["verified", "rejected"]
    rejection_reason: Optional[str] = Field(None, alias="remarks")

    model_config = {"populate_by_name": True}


class VerificationResult(BaseModel):
    document_id: str
    application_id: str
    old_status: str
    verification_status: str
    verified_by: str
    verified_at: datetime
    rejection_reason: Optional[str] = None


class DocumentReadiness(BaseModel):
    application_id: str
    required_count: int
    verified_required_count: int
    missing_document_types: list[str] = Field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.required_count > 0 and self.verified_required_count == self.required_count
