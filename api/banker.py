from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.applications import _application_to_response, _document_to_response
from api.deps import get_actor
from database import get_db
from models import ApplicationDistribution, LoanOffer
from schemas.application import DocumentRequest
from schemas.marketplace import OfferCreate
from services import workflow
from services.authorization import ActorContext
from utils.serialization import row_to_response

router = APIRouter(prefix="/api/banker", tags=["banker"])

DISTRIBUTION_FIELDS = ("id", "bank_id", "status", "sent_at", "response_due_date", "viewed_at")


def _offer_to_response(offer: LoanOffer) -> dict[str, Any]:
    return {
        "id": offer.id,
        "applicationId": offer.loan_application_id,
        "bankId": offer.bank_id,
        "bankerId": offer.banker_id,
        "offeredAmount": str(offer.offered_amount),
        "interestRate": str(offer.interest_rate),
        "tenureMonths": offer.tenure_months,
        "processingFee": str(offer.processing_fee) if offer.processing_fee is not None else None,
        "monthlyEmi": str(offer.monthly_emi) if offer.monthly_emi is not None else None,
        "validUntil": offer.valid_until.isoformat() if offer.valid_until else None,
        "termsConditions": offer.terms_conditions,
        "specialFeatures": offer.special_features,
        "remarks": offer.remarks,
        "status": offer.status,
        "createdAt": offer.created_at.isoformat() if offer.created_at else None,
    }


def _distribution_to_response(d: ApplicationDistribution) -> dict[str, Any]:
    return row_to_response(d, DISTRIBUTION_FIELDS)


@router.get("/applications")
async def list_distributed_applications(
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    rows = await workflow.list_distributed_applications(db, actor)
    return [
        {**_application_to_response(app), "distribution": _distribution_to_response(dist)}
        for app, dist in rows
    ]


@router.get("/applications/{application_id}")
async def view_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    view = await workflow.view_application(db, actor, application_id)
    out = _application_to_response(view["application"])
    out["distribution"] = _distribution_to_response(view["distribution"])
    out["documents"] = [_document_to_response(d) for d in view["documents"]]
    out["myOffer"] = _offer_to_response(view["offer"]) if view["offer"] else None
    return out


@router.post("/applications/{application_id}/offer", status_code=201)
async def submit_offer(
    application_id: str,
    body: OfferCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    offer = await workflow.submit_offer(db, actor, application_id, body)
    return _offer_to_response(offer)


@router.put("/applications/{application_id}/offer")
async def revise_offer(
    application_id: str,
    body: OfferCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    offer = await workflow.revise_offer(db, actor, application_id, body)
    return _offer_to_response(offer)


@router.get("/applications/{application_id}/offers")
async def list_competing_offers(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    offers = await workflow.list_competing_offers(db, actor, application_id)
    return [_offer_to_response(o) for o in offers]


@router.post("/applications/{application_id}/request-documents")
async def request_documents(
    application_id: str,
    body: DocumentRequest,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    result = await workflow.request_documents(db, actor, application_id, body.documents)
    return {
        "success": True,
        "applicationId": result.application_id,
        "oldStatus": result.old_status,
        "newStatus": result.new_status,
    }
