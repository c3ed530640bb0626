from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor
from database import get_db
from models import CustomerDocument, LoanApplication
from schemas.application import ApplicationCreate
from schemas.document import DocumentAttach
from services import documents, workflow
from services.authorization import ActorContext
from utils.serialization import dict_keys_to_camel, row_to_response, to_jsonable

router = APIRouter(prefix="/api/applications", tags=["applications"])

DOCUMENT_FIELDS = (
    "id",
    "loan_application_id",
    "document_type_id",
    "file_name",
    "storage_path",
    "verification_status",
    "verified_by",
    "verified_at",
    "rejection_reason",
    "created_at",
)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value) -> Optional[str]:
    return str(value) if value is not None else None


def _application_to_response(app: LoanApplication) -> dict[str, Any]:
    """Serialize application to dict with camelCase for frontend."""
    return {
        "id": app.id,
        "applicationNumber": app.application_number,
        "customerId": app.customer_id,
        "connectorId": app.connector_id,
        "loanCategoryId": app.loan_category_id,
        "requestedAmount": _money(app.requested_amount),
        "purpose": app.purpose,
        "monthlyIncome": _money(app.monthly_income),
        "employmentType": app.employment_type,
        "status": app.status,
        "marketplaceStatus": app.marketplace_status,
        "selectedOfferId": app.selected_offer_id,
        "approvedAmount": _money(app.approved_amount),
        "approvedInterestRate": _money(app.approved_interest_rate),
        "approvedTenureMonths": app.approved_tenure_months,
        "disbursedAmount": _money(app.disbursed_amount),
        "disbursementDetails": dict_keys_to_camel(app.disbursement_details) if app.disbursement_details else None,
        "bankerRemarks": app.banker_remarks,
        "operatorRemarks": app.operator_remarks,
        "createdAt": _iso(app.created_at),
        "updatedAt": _iso(app.updated_at),
        "approvedAt": _iso(app.approved_at),
        "disbursedAt": _iso(app.disbursed_at),
    }


def _document_to_response(doc: CustomerDocument) -> dict[str, Any]:
    return row_to_response(doc, DOCUMENT_FIELDS)


@router.get("")
async def list_applications(
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    apps = await workflow.list_applications(db, actor, status=status)
    return [_application_to_response(a) for a in apps]


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    app = await workflow.get_application(db, actor, application_id)
    docs = await documents.list_documents(db, app.id)
    readiness = await documents.document_readiness(db, app.id)
    out = _application_to_response(app)
    out["documents"] = [_document_to_response(d) for d in docs]
    out["documentReadiness"] = dict_keys_to_camel(
        to_jsonable({**readiness.model_dump(), "ready": readiness.ready})
    )
    return out


@router.post("", status_code=201)
async def create_application(
    body: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    app = await workflow.submit_application(db, actor, body)
    return _application_to_response(app)


@router.post("/{application_id}/documents", status_code=201)
async def attach_document(
    application_id: str,
    body: DocumentAttach,
    db: AsyncSession = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
):
    doc = await workflow.attach_document(db, actor, application_id, body)
    return _document_to_response(doc)
