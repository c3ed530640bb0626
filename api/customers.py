from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor
from database import get_db
from models import Customer
from schemas.party import CustomerCreate
from services import workflow
from services.authorization import ActorContext
from utils.serialization import row_to_response

router = APIRouter(prefix="/api/customers", tags=["customers"])

CUSTOMER_FIELDS = (
    "id",
    "connector_id",
    "first_name",
    "last_name",
    "email",
    "phone",
    "date_of_birth",
    "gender",
    "marital_status",
    "address",
    "city",
    "state",
    "pincode",
    "created_at",
)


def _mask(value: Optional[str], visible: int = 4) -> Optional[str]:
    if not value:
        return value
    return "*" * max(len(value) - visible, 0) + value[-visible:]


def _customer_to_response(customer: Customer) -> dict[str, Any]:
    out = row_to_response(customer, CUSTOMER_FIELDS)
    out["fullName"] = customer.full_name
    out["aadharNumber"] = _mask(customer.aadhar_number)
    out["panNumber"] = _mask(customer.pan_number)
    return out


@router.post("", status_code=201)
async def register_customer(
    body: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    customer = await workflow.register_customer(db, actor, body)
    return _customer_to_response(customer)


@router.get("")
async def list_customers(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    customers, total = await workflow.list_customers(db, actor, search=search, page=page, limit=limit)
    return {
        "customers": [_customer_to_response(c) for c in customers],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
