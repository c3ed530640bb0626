"""
Distribution & offer marketplace.

Maintains which banks an application was sent to and the set of competing
offers, with one hard rule: selecting an offer is atomic and mutually
exclusive. Every decision read here is repeated inside the caller's unit of
work with row locks and conditional updates, so two operators racing on the
same application cannot both win.
"""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import ApplicationDistribution, Bank, Banker, LoanApplication, LoanOffer
from schemas.marketplace import ApprovalResult, DistributionBatchResult
from services import states
from services.exceptions import ConflictError, NotFoundError, ValidationError
from utils.clock import hours_from_now, utcnow

logger = logging.getLogger("marketplace.offers")

CENT = Decimal("0.01")


def monthly_emi(principal: Decimal, annual_rate: Decimal, tenure_months: int) -> Decimal:
    """Standard reducing-balance EMI, rounded to paise."""
    principal = Decimal(principal)
    if tenure_months <= 0:
        raise ValidationError("Tenure must be positive")
    r = Decimal(annual_rate) / Decimal(1200)
    if r == 0:
        return (principal / tenure_months).quantize(CENT, rounding=ROUND_HALF_UP)
    factor = (1 + r) ** tenure_months
    return (principal * r * factor / (factor - 1)).quantize(CENT, rounding=ROUND_HALF_UP)


async def get_application(
    session: AsyncSession, application_id: str, *, for_update: bool = False
) -> LoanApplication:
    stmt = select(LoanApplication).where(LoanApplication.id == application_id)
    if for_update:
        stmt = stmt.with_for_update()
    application = (await session.execute(stmt)).scalar_one_or_none()
    if application is None:
        raise NotFoundError("application", application_id)
    return application


async def get_distribution(
    session: AsyncSession, application_id: str, bank_id: str
) -> ApplicationDistribution | None:
    result = await session.execute(
        select(ApplicationDistribution).where(
            ApplicationDistribution.loan_application_id == application_id,
            ApplicationDistribution.bank_id == bank_id,
        )
    )
    return result.scalar_one_or_none()


async def distribute(
    session: AsyncSession,
    application: LoanApplication,
    bank_ids: list[str],
    operator_id: str,
    due_hours: int | None = None,
) -> DistributionBatchResult:
    """
    Send the application to each bank that does not already hold it.

    Banks already targeted are skipped and reported; a request in which every
    bank is already targeted is a conflict. The (application, bank) unique key
    backs the check against concurrent distributors.
    """
    requested = list(dict.fromkeys(b for b in (bank_ids or []) if b))
    if not requested:
        raise ValidationError("Please select at least one bank")
    hours = settings.distribution_due_hours if due_hours is None else due_hours
    if hours <= 0:
        raise ValidationError("Response window must be positive", response_due_hours=hours)

    if application.status not in states.PRE_APPROVAL_STATES:
        raise ConflictError(
            f"Application in status {application.status} cannot be distributed",
            application_id=application.id,
        )
    if application.marketplace_status == states.MP_OFFER_SELECTED:
        raise ConflictError("An offer has already been selected for this application", application_id=application.id)

    banks = (await session.execute(select(Bank).where(Bank.id.in_(requested)))).scalars().all()
    found = {b.id: b for b in banks}
    missing = [b for b in requested if b not in found]
    if missing:
        raise NotFoundError("bank", missing, message=f"Bank not found: {', '.join(missing)}")
    inactive = [b.id for b in banks if b.status != "active"]
    if inactive:
        raise ValidationError("Cannot distribute to inactive banks", bank_ids=inactive)

    already = set(
        (
            await session.execute(
                select(ApplicationDistribution.bank_id).where(
                    ApplicationDistribution.loan_application_id == application.id,
                    ApplicationDistribution.bank_id.in_(requested),
                )
            )
        ).scalars().all()
    )
    new_bank_ids = [b for b in requested if b not in already]
    if not new_bank_ids:
        raise ConflictError(
            "This application has already been sent to the selected banks",
            application_id=application.id,
            bank_ids=requested,
        )

    now = utcnow()
    due = hours_from_now(hours, now)
    rows = [
        ApplicationDistribution(
            id=f"dist-{uuid.uuid4().hex[:12]}",
            loan_application_id=application.id,
            bank_id=bank_id,
            operator_id=operator_id,
            status="sent",
            sent_at=now,
            response_due_date=due,
        )
        for bank_id in new_bank_ids
    ]
    session.add_all(rows)
    application.marketplace_status = states.advance_marketplace(
        application.marketplace_status, states.MP_DISTRIBUTED
    )
    application.updated_at = now
    try:
        await session.flush()
    except IntegrityError as e:
        raise ConflictError(
            "Application was distributed to one of these banks concurrently",
            application_id=application.id,
        ) from e

    return DistributionBatchResult(
        application_id=application.id,
        distribution_ids=[r.id for r in rows],
        distributed_bank_ids=new_bank_ids,
        skipped_bank_ids=[b for b in requested if b in already],
        response_due_date=due,
        marketplace_status=application.marketplace_status,
    )


async def record_offer_view(session: AsyncSession, application_id: str, bank_id: str) -> bool:
    """Mark a distribution viewed on first read. Returns True only for the first view."""
    result = await session.execute(
        update(ApplicationDistribution)
        .where(
            ApplicationDistribution.loan_application_id == application_id,
            ApplicationDistribution.bank_id == bank_id,
            ApplicationDistribution.status == "sent",
        )
        .values(status="viewed", viewed_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def _check_terms(banker: Banker, offered_amount: Decimal, interest_rate: Decimal, tenure_months: int) -> None:
    if offered_amount is None or Decimal(offered_amount) <= 0:
        raise ValidationError("Offered amount must be positive")
    if interest_rate is None or Decimal(interest_rate) <= 0:
        raise ValidationError("Interest rate must be positive")
    if not tenure_months or tenure_months <= 0:
        raise ValidationError("Tenure must be positive")
    limit = banker.max_approval_limit
    if limit is not None and Decimal(offered_amount) > Decimal(limit):
        raise ValidationError(
            f"Offered amount exceeds your approval limit of {limit}",
            max_approval_limit=str(limit),
        )


async def create_offer(
    session: AsyncSession,
    application: LoanApplication,
    banker: Banker,
    offered_amount: Decimal,
    interest_rate: Decimal,
    tenure_months: int,
    processing_fee: Decimal = Decimal("0"),
    **extra: Any,
) -> LoanOffer:
    """
    Record a bank's offer against a distribution it holds.
    Offers from different banks never block each other.
    """
    distribution = await get_distribution(session, application.id, banker.bank_id)
    if distribution is None:
        raise NotFoundError("application", application.id, message="Application not available for offers")
    if application.status not in states.PRE_APPROVAL_STATES or (
        application.marketplace_status not in states.OFFER_ACCEPTING_STATES
    ):
        raise ConflictError(
            "Application is not accepting offers",
            status=application.status,
            marketplace_status=application.marketplace_status,
        )
    _check_terms(banker, offered_amount, interest_rate, tenure_months)

    active = await session.execute(
        select(LoanOffer.id).where(
            LoanOffer.loan_application_id == application.id,
            LoanOffer.bank_id == banker.bank_id,
            LoanOffer.status == "active",
        )
    )
    if active.first() is not None:
        raise ConflictError("Your bank already has an active offer; revise it instead", application_id=application.id)

    now = utcnow()
    offer = LoanOffer(
        id=f"offer-{uuid.uuid4().hex[:12]}",
        loan_application_id=application.id,
        bank_id=banker.bank_id,
        banker_id=banker.id,
        offered_amount=Decimal(offered_amount),
        interest_rate=Decimal(interest_rate),
        tenure_months=tenure_months,
        processing_fee=Decimal(processing_fee or 0),
        monthly_emi=monthly_emi(offered_amount, interest_rate, tenure_months),
        valid_until=now + timedelta(days=settings.offer_validity_days),
        terms_conditions=extra.get("terms_conditions"),
        special_features=extra.get("special_features"),
        remarks=extra.get("remarks"),
        status="active",
        created_at=now,
        updated_at=now,
    )
    session.add(offer)
    distribution.status = "responded"
    if distribution.viewed_at is None:
        distribution.viewed_at = now
    application.marketplace_status = states.advance_marketplace(
        application.marketplace_status, states.MP_OFFERS_OPEN
    )
    application.updated_at = now
    await session.flush()
    return offer


async def revise_offer(
    session: AsyncSession,
    application: LoanApplication,
    banker: Banker,
    offered_amount: Decimal,
    interest_rate: Decimal,
    tenure_months: int,
    processing_fee: Decimal = Decimal("0"),
    **extra: Any,
) -> tuple[LoanOffer, dict[str, Any]]:
    """Update the banker's own active offer. Returns the offer and its previous terms."""
    offer = (
        await session.execute(
            select(LoanOffer)
            .where(
                LoanOffer.loan_application_id == application.id,
                LoanOffer.banker_id == banker.id,
                LoanOffer.status == "active",
            )
            .with_for_update()
        )
    ).scalar_one_or_none()
    if offer is None:
        raise NotFoundError("offer", None, message="No active offer found to update")
    if application.marketplace_status == states.MP_OFFER_SELECTED:
        raise ConflictError("An offer has already been selected for this application")
    _check_terms(banker, offered_amount, interest_rate, tenure_months)

    previous = {
        "offered_amount": offer.offered_amount,
        "interest_rate": offer.interest_rate,
        "tenure_months": offer.tenure_months,
    }
    now = utcnow()
    offer.offered_amount = Decimal(offered_amount)
    offer.interest_rate = Decimal(interest_rate)
    offer.tenure_months = tenure_months
    offer.processing_fee = Decimal(processing_fee or 0)
    offer.monthly_emi = monthly_emi(offered_amount, interest_rate, tenure_months)
    offer.valid_until = now + timedelta(days=settings.offer_validity_days)
    for field in ("terms_conditions", "special_features", "remarks"):
        if field in extra:
            setattr(offer, field, extra[field])
    offer.updated_at = now
    await session.flush()
    return offer, previous


async def list_competing_offers(
    session: AsyncSession, application_id: str, excluding_banker_id: str | None = None
) -> list[LoanOffer]:
    """Active offers on the application, newest first, optionally hiding one banker's own."""
    stmt = select(LoanOffer).where(
        LoanOffer.loan_application_id == application_id,
        LoanOffer.status == "active",
    )
    if excluding_banker_id:
        stmt = stmt.where(LoanOffer.banker_id != excluding_banker_id)
    stmt = stmt.order_by(LoanOffer.created_at.desc(), LoanOffer.id.desc())
    return list((await session.execute(stmt)).scalars().all())


async def select_offer(session: AsyncSession, application_id: str, offer_id: str) -> ApprovalResult:
    """
    Approve the application on the terms of one offer and reject every sibling.

    All checks run before the first write. The offer flip is a conditional
    ``active -> selected`` update: if another unit of work got there first the
    row count is zero and the whole unit fails with ``ConflictError``.
    """
    application = await get_application(session, application_id, for_update=True)
    if application.selected_offer_id is not None or application.marketplace_status == states.MP_OFFER_SELECTED:
        raise ConflictError("An offer has already been selected for this application", application_id=application_id)
    states.ensure_transition(application.status, states.APPROVED)

    offer = (
        await session.execute(
            select(LoanOffer)
            .where(LoanOffer.id == offer_id, LoanOffer.loan_application_id == application_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if offer is None:
        raise NotFoundError("offer", offer_id)
    if offer.status != "active":
        raise ConflictError(f"Offer is {offer.status} and cannot be selected", offer_id=offer_id)

    now = utcnow()
    flipped = await session.execute(
        update(LoanOffer)
        .where(LoanOffer.id == offer_id, LoanOffer.status == "active")
        .values(status="selected", updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    if flipped.rowcount != 1:
        raise ConflictError("Offer was changed by another request", offer_id=offer_id)

    sibling_ids = list(
        (
            await session.execute(
                select(LoanOffer.id).where(
                    LoanOffer.loan_application_id == application_id,
                    LoanOffer.id != offer_id,
                    LoanOffer.status != "rejected",
                )
            )
        ).scalars().all()
    )
    if sibling_ids:
        await session.execute(
            update(LoanOffer)
            .where(LoanOffer.id.in_(sibling_ids))
            .values(status="rejected", updated_at=now)
            .execution_options(synchronize_session="fetch")
        )

    application.selected_offer_id = offer.id
    application.status = states.APPROVED
    application.marketplace_status = states.MP_OFFER_SELECTED
    application.approved_amount = offer.offered_amount
    application.approved_interest_rate = offer.interest_rate
    application.approved_tenure_months = offer.tenure_months
    application.approved_at = now
    application.updated_at = now
    await session.flush()

    return ApprovalResult(
        application_id=application.id,
        selected_offer_id=offer.id,
        approved_amount=offer.offered_amount,
        approved_interest_rate=offer.interest_rate,
        approved_tenure_months=offer.tenure_months,
        rejected_offer_ids=sibling_ids,
    )


async def reject_open_offers(session: AsyncSession, application_id: str) -> list[str]:
    """Close every active offer when the application itself is rejected."""
    ids = list(
        (
            await session.execute(
                select(LoanOffer.id).where(
                    LoanOffer.loan_application_id == application_id,
                    LoanOffer.status == "active",
                )
            )
        ).scalars().all()
    )
    if ids:
        await session.execute(
            update(LoanOffer)
            .where(LoanOffer.id.in_(ids))
            .values(status="rejected", updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
    return ids
