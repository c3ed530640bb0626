from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor
from database import get_db
from models import Bank, CommissionRecord
from schemas.application import DisburseRequest
from schemas.commission import CommissionPayRequest
from schemas.party import BankCreate, BankStatusUpdate
from services import workflow
from services.authorization import ActorContext
from utils.serialization import dict_keys_to_camel, row_to_response, to_jsonable

router = APIRouter(prefix="/api/admin", tags=["admin"])

COMMISSION_FIELDS = (
    "id",
    "loan_application_id",
    "connector_id",
    "commission_percentage",
    "commission_amount",
    "status",
    "paid_at",
    "paid_by",
    "payment_reference",
    "created_at",
)


def _commission_to_response(record: CommissionRecord) -> dict[str, Any]:
    return row_to_response(record, COMMISSION_FIELDS)


@router.put("/disbursements/{application_id}/disburse")
async def disburse(
    application_id: str,
    body: DisburseRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.disburse(db, actor, application_id, body)
    return dict_keys_to_camel(to_jsonable({"success": True, **result.model_dump()}))


@router.get("/commissions")
async def list_commissions(
    connector_id: Optional[str] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    summary, records = await workflow.commission_overview(db, actor, connector_id=connector_id, status=status)
    return {
        "summary": dict_keys_to_camel(to_jsonable(summary.model_dump())) if summary else None,
        "commissions": [_commission_to_response(r) for r in records],
    }


@router.post("/commissions/pay")
async def pay_commissions(
    body: CommissionPayRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.pay_commissions(db, actor, body)
    return dict_keys_to_camel(
        to_jsonable({"success": True, **result.model_dump(), "paid_count": result.paid_count})
    )


BANK_FIELDS = ("id", "name", "code", "contact_email", "status", "created_at")


def _bank_to_response(bank: Bank) -> dict[str, Any]:
    return row_to_response(bank, BANK_FIELDS)


@router.get("/banks")
async def list_banks(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Active banks ordered by name; admins may ask for inactive ones too."""
    banks = await workflow.list_banks(db, actor, include_inactive=include_inactive)
    return [_bank_to_response(b) for b in banks]


@router.post("/banks", status_code=201)
async def create_bank(
    body: BankCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    bank = await workflow.create_bank(db, actor, body)
    return _bank_to_response(bank)


@router.put("/banks/{bank_id}/status")
async def set_bank_status(
    bank_id: str,
    body: BankStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    bank = await workflow.set_bank_status(db, actor, bank_id, body.status)
    return _bank_to_response(bank)
