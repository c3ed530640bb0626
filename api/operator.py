from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor
from database import get_db
from schemas.application import StatusUpdate
from schemas.document import DocumentVerify
from schemas.marketplace import DistributeRequest, SelectOfferRequest
from services import workflow
from services.authorization import ActorContext
from utils.serialization import dict_keys_to_camel, to_jsonable

router = APIRouter(prefix="/api/operator", tags=["operator"])


def _result_to_response(result, **extra) -> dict:
    """Pydantic result models go out camelCased and JSON-safe."""
    return dict_keys_to_camel(to_jsonable({"success": True, **result.model_dump(), **extra}))


@router.put("/applications/{application_id}/status")
async def update_status(
    application_id: str,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.update_status(db, actor, application_id, body.status, body.remarks)
    return _result_to_response(result)


@router.post("/applications/{application_id}/distribute")
async def distribute_application(
    application_id: str,
    body: DistributeRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.distribute_application(
        db, actor, application_id, body.bank_ids, body.response_due_hours
    )
    return _result_to_response(result, distributed_count=result.distributed_count)


@router.post("/applications/{application_id}/select-offer")
async def select_offer(
    application_id: str,
    body: SelectOfferRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.select_offer(db, actor, application_id, body.offer_id)
    return _result_to_response(result)


@router.put("/documents/{document_id}/verify")
async def verify_document(
    document_id: str,
    body: DocumentVerify,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.verify_document(db, actor, document_id, body.status, body.rejection_reason)
    app = await workflow.get_application(db, actor, result.application_id)
    return _result_to_response(result, application_status=app.status)
