"""
Commission engine: accrual on approval/disbursement and batch settlement.
"""
from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import CommissionPayment, CommissionRecord, Connector, LoanApplication
from schemas.commission import CommissionSummary, PaymentResult
from services.exceptions import ConflictError, NoEligibleRecordsError, NotFoundError, ValidationError
from utils.clock import utcnow

logger = logging.getLogger("marketplace.commission")

CENT = Decimal("0.01")


def compute_commission(basis: Decimal, percentage: Decimal) -> Decimal:
    return (Decimal(basis) * Decimal(percentage) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)


def _commission_basis(application: LoanApplication) -> Decimal | None:
    if application.disbursed_amount is not None:
        return Decimal(application.disbursed_amount)
    if application.approved_amount is not None:
        return Decimal(application.approved_amount)
    return None


async def accrue(session: AsyncSession, application: LoanApplication) -> CommissionRecord:
    """
    Create (or return) the single commission record for an application's connector.

    The basis is the disbursed amount once known, otherwise the approved amount.
    Calling again is safe: an ``earned`` record is re-based if the basis moved,
    a ``paid`` record is returned untouched.
    """
    if not application.connector_id:
        raise ValidationError("Application has no connector to credit", application_id=application.id)
    basis = _commission_basis(application)
    if basis is None:
        raise ValidationError("Commission accrues only on approved applications", application_id=application.id)

    connector = await session.get(Connector, application.connector_id)
    if connector is None:
        raise NotFoundError("connector", application.connector_id)
    percentage = Decimal(connector.commission_percentage or 0)
    amount = compute_commission(basis, percentage)

    existing = await _find_record(session, application.id, application.connector_id)
    if existing is not None:
        if existing.status == "earned" and Decimal(existing.commission_amount) != amount:
            existing.commission_percentage = percentage
            existing.commission_amount = amount
            await session.flush()
        return existing

    record = CommissionRecord(
        id=f"comm-{uuid.uuid4().hex[:12]}",
        loan_application_id=application.id,
        connector_id=application.connector_id,
        commission_percentage=percentage,
        commission_amount=amount,
        status="earned",
        created_at=utcnow(),
    )
    session.add(record)
    try:
        await session.flush()
    except IntegrityError as e:
        # Another unit of work accrued first; the unique (application, connector) key held.
        raise ConflictError("Commission already accrued for this application", application_id=application.id) from e
    logger.info(
        "commission accrued",
        extra={"application_id": application.id, "commission_id": record.id, "amount": str(amount)},
    )
    return record


async def _find_record(session: AsyncSession, application_id: str, connector_id: str) -> CommissionRecord | None:
    result = await session.execute(
        select(CommissionRecord)
        .where(
            CommissionRecord.loan_application_id == application_id,
            CommissionRecord.connector_id == connector_id,
        )
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def _reference_taken(session: AsyncSession, reference: str) -> bool:
    found = await session.execute(
        select(CommissionPayment.id).where(CommissionPayment.payment_reference == reference)
    )
    return found.scalar_one_or_none() is not None


async def pay_batch(
    session: AsyncSession,
    commission_ids: list[str],
    payment_reference: str,
    paid_by: str,
    payment_method: str | None = None,
    remarks: str | None = None,
) -> PaymentResult:
    """
    Settle every requested record that is still ``earned``; others are skipped.
    Raises ``NoEligibleRecordsError`` without writing when none qualify.
    """
    requested = list(dict.fromkeys(i for i in commission_ids if i))
    if not requested:
        raise ValidationError("No commissions selected")
    reference = (payment_reference or "").strip()
    if not reference:
        raise ValidationError("Payment reference is required")

    eligible = (
        await session.execute(
            select(CommissionRecord)
            .where(CommissionRecord.id.in_(requested), CommissionRecord.status == "earned")
            .with_for_update()
        )
    ).scalars().all()
    if not eligible:
        raise NoEligibleRecordsError("No eligible commissions found", commission_ids=requested)

    if await _reference_taken(session, reference):
        raise ConflictError("Payment reference already used", payment_reference=reference)

    eligible_ids = [r.id for r in eligible]
    now = utcnow()
    result = await session.execute(
        update(CommissionRecord)
        .where(CommissionRecord.id.in_(eligible_ids), CommissionRecord.status == "earned")
        .values(status="paid", paid_at=now, paid_by=paid_by, payment_reference=reference)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != len(eligible_ids):
        raise ConflictError("Commission records changed while paying; retry the batch")

    total = sum((Decimal(r.commission_amount) for r in eligible), Decimal("0")).quantize(CENT)
    payment = CommissionPayment(
        id=f"pay-{uuid.uuid4().hex[:12]}",
        payment_reference=reference,
        payment_method=payment_method,
        total_amount=total,
        commission_count=len(eligible_ids),
        paid_by=paid_by,
        remarks=remarks,
        paid_at=now,
    )
    session.add(payment)
    try:
        await session.flush()
    except IntegrityError as e:
        # A concurrent batch committed the same reference after the check above
        raise ConflictError("Payment reference already used", payment_reference=reference) from e

    return PaymentResult(
        payment_id=payment.id,
        payment_reference=reference,
        paid_ids=eligible_ids,
        skipped_ids=[i for i in requested if i not in set(eligible_ids)],
        total_amount=total,
        paid_at=now,
    )


async def connector_commission_summary(session: AsyncSession, connector_id: str) -> CommissionSummary:
    rows = (
        await session.execute(
            select(
                CommissionRecord.status,
                func.count(CommissionRecord.id),
                func.coalesce(func.sum(CommissionRecord.commission_amount), 0),
            )
            .where(CommissionRecord.connector_id == connector_id)
            .group_by(CommissionRecord.status)
        )
    ).all()
    summary = CommissionSummary(connector_id=connector_id)
    for status, count, amount in rows:
        if status == "earned":
            summary.earned_count = count
            summary.earned_amount = Decimal(str(amount)).quantize(CENT)
        elif status == "paid":
            summary.paid_count = count
            summary.paid_amount = Decimal(str(amount)).quantize(CENT)
    return summary


async def list_commissions(
    session: AsyncSession, connector_id: str | None = None, status: str | None = None
) -> list[CommissionRecord]:
    stmt = select(CommissionRecord).order_by(CommissionRecord.created_at.desc())
    if connector_id:
        stmt = stmt.where(CommissionRecord.connector_id == connector_id)
    if status:
        stmt = stmt.where(CommissionRecord.status == status)
    return list((await session.execute(stmt)).scalars().all())
