"""
Document verification gate.

Tracks per-document verification and aggregates it into an application's
readiness. It never changes the application's status itself; the workflow
reads ``document_readiness`` and decides.
"""
from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import CustomerDocument, DocumentType
from schemas.document import DocumentReadiness, VerificationResult
from services.exceptions import ConflictError, NotFoundError, ValidationError
from utils.clock import utcnow

VERIFICATION_OUTCOMES = ("verified", "rejected")


async def get_document(session: AsyncSession, document_id: str, *, for_update: bool = False) -> CustomerDocument:
    stmt = select(CustomerDocument).where(CustomerDocument.id == document_id)
    if for_update:
        stmt = stmt.with_for_update()
    document = (await session.execute(stmt)).scalar_one_or_none()
    if document is None:
        raise NotFoundError("document", document_id)
    return document


async def attach_document(
    session: AsyncSession,
    application_id: str,
    document_type_id: str,
    storage_path: str,
    uploaded_by: str,
    file_name: str | None = None,
) -> CustomerDocument:
    """Record a stored upload as a new pending document."""
    if not storage_path or not storage_path.strip():
        raise ValidationError("Storage path is required")
    doc_type = await session.get(DocumentType, document_type_id)
    if doc_type is None:
        raise NotFoundError("document_type", document_type_id)
    document = CustomerDocument(
        id=f"doc-{uuid.uuid4().hex[:12]}",
        loan_application_id=application_id,
        document_type_id=document_type_id,
        storage_path=storage_path.strip(),
        file_name=file_name,
        uploaded_by=uploaded_by,
        verification_status="pending",
        created_at=utcnow(),
    )
    session.add(document)
    await session.flush()
    return document


async def verify(
    session: AsyncSession,
    document_id: str,
    status: str,
    verifier_id: str,
    rejection_reason: str | None = None,
) -> VerificationResult:
    """
    Stamp a pending document as verified or rejected.

    A rejection needs a reason; a verification must not carry one. Only
    ``pending`` documents can be decided: a corrected document is uploaded as a
    new record rather than overwriting a decided one.
    """
    if status not in VERIFICATION_OUTCOMES:
        raise ValidationError("Invalid verification status", status=status)
    reason = (rejection_reason or "").strip() or None
    if status == "rejected" and reason is None:
        raise ValidationError("Rejection reason is required when rejecting a document")
    if status == "verified" and reason is not None:
        raise ValidationError("Rejection reason is only allowed when rejecting a document")

    document = await get_document(session, document_id, for_update=True)
    if document.verification_status != "pending":
        raise ConflictError(
            f"Document already {document.verification_status}; upload a new version instead",
            document_id=document_id,
        )

    old_status = document.verification_status
    now = utcnow()
    document.verification_status = status
    document.verified_by = verifier_id
    document.verified_at = now
    document.rejection_reason = reason
    await session.flush()

    return VerificationResult(
        document_id=document.id,
        application_id=document.loan_application_id,
        old_status=old_status,
        verification_status=status,
        verified_by=verifier_id,
        verified_at=now,
        rejection_reason=reason,
    )


async def document_readiness(session: AsyncSession, application_id: str) -> DocumentReadiness:
    """A required type counts once any of its documents for the application is verified."""
    required = (
        await session.execute(select(DocumentType).where(DocumentType.is_required.is_(True)))
    ).scalars().all()
    verified_type_ids = set(
        (
            await session.execute(
                select(CustomerDocument.document_type_id).where(
                    CustomerDocument.loan_application_id == application_id,
                    CustomerDocument.verification_status == "verified",
                )
            )
        ).scalars().all()
    )
    missing = [t.name for t in required if t.id not in verified_type_ids]
    return DocumentReadiness(
        application_id=application_id,
        required_count=len(required),
        verified_required_count=len(required) - len(missing),
        missing_document_types=missing,
    )


async def list_documents(session: AsyncSession, application_id: str) -> list[CustomerDocument]:
    result = await session.execute(
        select(CustomerDocument)
        .where(CustomerDocument.loan_application_id == application_id)
        .order_by(CustomerDocument.created_at)
    )
    return list(result.scalars().all())
