from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

from schemas.application import REQUEST_CONFIG


class CustomerCreate(BaseModel):
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    marital_status: Optional[Literal["single", "married", "divorced", "widowed"]] = None
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    aadhar_number: str = ""
    pan_number: str = ""

    model_config = REQUEST_CONFIG


class BankCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=20)
    contact_email: Optional[str] = None

    model_config = REQUEST_CONFIG


class BankStatusUpdate(BaseModel):
    status: Literal["active", "inactive"]

    model_config = REQUEST_CONFIG
