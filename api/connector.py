from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.admin import _commission_to_response
from api.deps import get_actor
from database import get_db
from services import workflow
from services.authorization import ActorContext
from utils.serialization import dict_keys_to_camel, row_to_response, to_jsonable

router = APIRouter(prefix="/api/connector", tags=["connector"])


@router.get("/commissions")
async def my_commissions(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    """Connector's own commission records with earned/paid totals."""
    summary, records = await workflow.commission_overview(db, actor, status=status)
    return {
        "summary": dict_keys_to_camel(to_jsonable(summary.model_dump())) if summary else None,
        "commissions": [_commission_to_response(r) for r in records],
    }


PROFILE_FIELDS = (
    "id",
    "agent_code",
    "name",
    "email",
    "commission_percentage",
    "total_cases_submitted",
    "total_approved_cases",
    "created_at",
)


@router.get("/profile")
async def my_profile(
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    connector = await workflow.connector_profile(db, actor)
    return row_to_response(connector, PROFILE_FIELDS)
