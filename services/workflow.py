"""
Application workflow state machine.

The single entry point for actor actions. Each transition:

1. checks the actor's capability, then row-level ownership;
2. re-reads the rows it decides on inside the caller's unit of work;
3. validates the current state against ``services.states``;
4. mutates application / distribution / offer / commission / document rows;
5. appends one audit entry for the logical transition;
6. fires best-effort notifications.

The caller owns the unit of work (``database.get_db``): it commits after a
transition returns and rolls back everything if one raises.
"""
from __future__ import annotations

import logging
import re
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import (
    ApplicationDistribution,
    Bank,
    Banker,
    CommissionRecord,
    Connector,
    Customer,
    CustomerDocument,
    LoanApplication,
    LoanCategory,
    LoanOffer,
)
from schemas.application import ApplicationCreate, DisbursementResult, DisburseRequest, TransitionResult
from schemas.commission import CommissionPayRequest, CommissionSummary, PaymentResult
from schemas.document import DocumentAttach, VerificationResult
from schemas.marketplace import ApprovalResult, DistributionBatchResult, OfferCreate
from schemas.party import BankCreate, CustomerCreate
from services import commission, documents, marketplace, states
from services.audit import record_audit
from services.authorization import ActorContext, Capability, Role, require_capability
from services.exceptions import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from services.notifications import notify
from utils.clock import utcnow

logger = logging.getLogger("marketplace.workflow")

OPERATOR_STATUS_TARGETS = frozenset({states.UNDER_VERIFICATION, states.VERIFIED, states.REJECTED})


def generate_application_number(now=None) -> str:
    now = now or utcnow()
    return f"{settings.application_number_prefix}{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def _snapshot(application: LoanApplication) -> dict[str, Any]:
    return {
        "status": application.status,
        "marketplace_status": application.marketplace_status,
        "selected_offer_id": application.selected_offer_id,
    }


def _log_transition(action: str, actor: ActorContext | None, **fields: Any) -> None:
    logger.info(
        action,
        extra={"actor_id": actor.actor_id if actor else None, **fields},
    )


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------


async def _connector_for(session: AsyncSession, actor: ActorContext) -> Connector:
    connector = (
        await session.execute(select(Connector).where(Connector.user_id == actor.actor_id))
    ).scalar_one_or_none()
    if connector is None:
        raise AccessDeniedError("No connector profile for this user")
    return connector


async def _banker_for(session: AsyncSession, actor: ActorContext) -> Banker:
    banker = (
        await session.execute(select(Banker).where(Banker.user_id == actor.actor_id))
    ).scalar_one_or_none()
    if banker is None:
        raise AccessDeniedError("Banker not associated with any bank")
    return banker


async def _banker_application(
    session: AsyncSession, actor: ActorContext, application_id: str, *, for_update: bool = False
) -> tuple[LoanApplication, Banker, ApplicationDistribution]:
    """An application is visible to a banker only through their bank's distribution."""
    banker = await _banker_for(session, actor)
    application = await marketplace.get_application(session, application_id, for_update=for_update)
    distribution = await marketplace.get_distribution(session, application.id, banker.bank_id)
    if distribution is None:
        raise NotFoundError("application", application_id)
    return application, banker, distribution


async def _parties(session: AsyncSession, application: LoanApplication) -> tuple[Customer | None, Connector | None]:
    customer = await session.get(Customer, application.customer_id)
    connector = await session.get(Connector, application.connector_id) if application.connector_id else None
    return customer, connector


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------

PHONE_RE = re.compile(r"^[6-9]\d{9}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PINCODE_RE = re.compile(r"^\d{6}$")
AADHAR_RE = re.compile(r"^\d{12}$")
PAN_RE = re.compile(r"^[A-Z]{5}\d{4}[A-Z]$")


def _customer_errors(data: CustomerCreate) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field in ("first_name", "last_name", "address", "city", "state"):
        if not getattr(data, field).strip():
            errors[field] = f"{field.replace('_', ' ').capitalize()} is required"
    if data.email and not EMAIL_RE.match(data.email):
        errors["email"] = "Invalid email format"
    checks = (
        ("phone", data.phone, PHONE_RE),
        ("pincode", data.pincode, PINCODE_RE),
        ("aadhar_number", data.aadhar_number, AADHAR_RE),
        ("pan_number", data.pan_number, PAN_RE),
    )
    for field, value, pattern in checks:
        if not value:
            errors[field] = f"{field.replace('_', ' ').capitalize()} is required"
        elif not pattern.match(value):
            errors[field] = f"Invalid {field.replace('_', ' ')}"
    return errors


async def _count_case(session: AsyncSession, connector_id: str, counter) -> None:
    await session.execute(
        update(Connector)
        .where(Connector.id == connector_id)
        .values({counter: counter + 1})
        .execution_options(synchronize_session="fetch")
    )


async def connector_profile(session: AsyncSession, actor: ActorContext) -> Connector:
    if actor.role != Role.CONNECTOR:
        raise AccessDeniedError("Access denied", role=actor.role.value)
    return await _connector_for(session, actor)


async def register_customer(session: AsyncSession, actor: ActorContext, data: CustomerCreate) -> Customer:
    """
    A connector onboards a customer. Aadhaar and PAN identify the person, so a
    second registration of either number is refused whichever connector owns
    the first one.
    """
    require_capability(actor, Capability.REGISTER_CUSTOMER)
    connector = await _connector_for(session, actor)

    data = data.model_copy(
        update={
            "phone": re.sub(r"\s+", "", data.phone),
            "aadhar_number": re.sub(r"\s+", "", data.aadhar_number),
            "pan_number": data.pan_number.strip().upper(),
            "pincode": data.pincode.strip(),
        }
    )
    errors = _customer_errors(data)
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    existing = (
        await session.execute(
            select(Customer.id).where(
                or_(Customer.aadhar_number == data.aadhar_number, Customer.pan_number == data.pan_number)
            )
        )
    ).first()
    if existing is not None:
        raise ConflictError("Customer with this Aadhar or PAN already exists")

    customer = Customer(
        id=f"cust-{uuid.uuid4().hex[:12]}",
        connector_id=connector.id,
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        phone=data.phone,
        email=data.email or None,
        date_of_birth=data.date_of_birth,
        gender=data.gender,
        marital_status=data.marital_status,
        address=data.address.strip(),
        city=data.city.strip(),
        state=data.state.strip(),
        pincode=data.pincode,
        aadhar_number=data.aadhar_number,
        pan_number=data.pan_number,
        created_at=utcnow(),
    )
    session.add(customer)
    try:
        await session.flush()
    except IntegrityError as e:
        raise ConflictError("Customer with this Aadhar or PAN already exists") from e
    await _count_case(session, connector.id, Connector.total_cases_submitted)

    record_audit(
        session,
        actor,
        "CUSTOMER_CREATED",
        "customer",
        customer.id,
        new_values={
            "customer_id": customer.id,
            "name": customer.full_name,
            "date_of_birth": customer.date_of_birth,
        },
    )
    _log_transition("customer registered", actor, customer_id=customer.id, connector_id=connector.id)
    return customer


async def list_customers(
    session: AsyncSession,
    actor: ActorContext,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Customer], int]:
    """Connectors see their own customers; operators and admins see everyone."""
    require_capability(actor, Capability.VIEW_CUSTOMERS)
    filters = []
    if actor.role == Role.CONNECTOR:
        connector = await _connector_for(session, actor)
        filters.append(Customer.connector_id == connector.id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    total = (await session.execute(select(func.count(Customer.id)).where(*filters))).scalar_one()
    stmt = (
        select(Customer)
        .where(*filters)
        .order_by(Customer.created_at.desc(), Customer.id)
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all()), total


async def create_bank(session: AsyncSession, actor: ActorContext, data: BankCreate) -> Bank:
    require_capability(actor, Capability.MANAGE_BANKS)
    code = data.code.strip().upper()
    name = data.name.strip()
    if not name or not code:
        raise ValidationError("Bank name and code are required")
    taken = (await session.execute(select(Bank.id).where(Bank.code == code))).first()
    if taken is not None:
        raise ConflictError("Bank code already exists", code=code)

    bank = Bank(
        id=f"bank-{uuid.uuid4().hex[:12]}",
        name=name,
        code=code,
        contact_email=data.contact_email,
        status="active",
        created_at=utcnow(),
    )
    session.add(bank)
    try:
        await session.flush()
    except IntegrityError as e:
        raise ConflictError("Bank code already exists", code=code) from e

    record_audit(session, actor, "BANK_CREATED", "bank", bank.id, new_values={"name": name, "code": code})
    _log_transition("bank created", actor, bank_id=bank.id)
    return bank


async def set_bank_status(session: AsyncSession, actor: ActorContext, bank_id: str, status: str) -> Bank:
    """Deactivated banks stay on record but can no longer receive distributions."""
    require_capability(actor, Capability.MANAGE_BANKS)
    if status not in ("active", "inactive"):
        raise ValidationError("Invalid bank status", status=status)
    bank = await session.get(Bank, bank_id)
    if bank is None:
        raise NotFoundError("bank", bank_id)
    old_status = bank.status
    bank.status = status
    await session.flush()
    record_audit(
        session,
        actor,
        "BANK_STATUS_UPDATE",
        "bank",
        bank.id,
        old_values={"status": old_status},
        new_values={"status": status},
    )
    return bank


async def list_banks(session: AsyncSession, actor: ActorContext, include_inactive: bool = False) -> list[Bank]:
    require_capability(actor, Capability.VIEW_BANKS)
    stmt = select(Bank).order_by(Bank.name)
    if not (include_inactive and actor.is_admin):
        stmt = stmt.where(Bank.status == "active")
    return list((await session.execute(stmt)).scalars().all())


# ---------------------------------------------------------------------------
# Origination
# ---------------------------------------------------------------------------


async def submit_application(
    session: AsyncSession, actor: ActorContext, data: ApplicationCreate
) -> LoanApplication:
    require_capability(actor, Capability.SUBMIT_APPLICATION)
    connector = await _connector_for(session, actor)

    customer = await session.get(Customer, data.customer_id)
    if customer is None:
        raise NotFoundError("customer", data.customer_id)
    if customer.connector_id != connector.id:
        raise AccessDeniedError("Customer not found or access denied", customer_id=data.customer_id)

    category = await session.get(LoanCategory, data.loan_category_id)
    if category is None or category.status != "active":
        raise NotFoundError("loan_category", data.loan_category_id)
    amount = Decimal(data.requested_amount)
    if amount < Decimal(category.min_amount) or amount > Decimal(category.max_amount):
        raise ValidationError(
            f"Requested amount must be between {category.min_amount} and {category.max_amount}",
            min_amount=str(category.min_amount),
            max_amount=str(category.max_amount),
        )

    now = utcnow()
    application = LoanApplication(
        id=f"app-{uuid.uuid4().hex[:12]}",
        application_number=generate_application_number(now),
        customer_id=customer.id,
        connector_id=connector.id,
        loan_category_id=category.id,
        requested_amount=amount,
        purpose=data.purpose,
        monthly_income=data.monthly_income,
        employment_type=data.employment_type,
        status=states.SUBMITTED,
        marketplace_status=states.MP_PENDING,
        created_at=now,
        updated_at=now,
    )
    session.add(application)
    await session.flush()

    record_audit(
        session,
        actor,
        "LOAN_APPLICATION_CREATED",
        "loan_application",
        application.id,
        new_values={
            "application_number": application.application_number,
            "customer_id": customer.id,
            "requested_amount": amount,
            "loan_category_id": category.id,
        },
    )
    _log_transition("application submitted", actor, application_id=application.id)
    notify(
        "application_submitted",
        customer.email,
        {
            "application_number": application.application_number,
            "customer_name": customer.full_name,
            "amount": str(amount),
            "loan_category": category.name,
        },
    )
    return application


async def attach_document(
    session: AsyncSession, actor: ActorContext, application_id: str, data: DocumentAttach
) -> CustomerDocument:
    require_capability(actor, Capability.ATTACH_DOCUMENT)
    application = await marketplace.get_application(session, application_id)
    if actor.role == Role.CONNECTOR:
        connector = await _connector_for(session, actor)
        if application.connector_id != connector.id:
            raise NotFoundError("application", application_id)
    if application.status not in states.PRE_APPROVAL_STATES:
        raise ConflictError(f"Documents cannot be added to a {application.status} application")

    document = await documents.attach_document(
        session,
        application.id,
        data.document_type_id,
        data.storage_path,
        uploaded_by=actor.actor_id,
        file_name=data.file_name,
    )
    record_audit(
        session,
        actor,
        "DOCUMENT_UPLOADED",
        "document",
        document.id,
        new_values={"application_id": application.id, "document_type_id": data.document_type_id},
    )
    return document


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


async def verify_document(
    session: AsyncSession,
    actor: ActorContext,
    document_id: str,
    status: str,
    rejection_reason: str | None = None,
) -> VerificationResult:
    """
    Decide one document, then let the readiness aggregate move the application:
    a ``submitted`` application enters ``under_verification``; once every
    required document type is verified it advances to ``verified``.
    """
    require_capability(actor, Capability.VERIFY_DOCUMENT)
    result = await documents.verify(session, document_id, status, actor.actor_id, rejection_reason)

    application = await marketplace.get_application(session, result.application_id, for_update=True)
    old_application_status = application.status
    if application.status == states.SUBMITTED:
        application.status = states.UNDER_VERIFICATION
        application.updated_at = utcnow()

    auto_advanced = False
    if status == "verified" and application.status == states.UNDER_VERIFICATION:
        readiness = await documents.document_readiness(session, application.id)
        if readiness.ready:
            application.status = states.VERIFIED
            application.updated_at = utcnow()
            auto_advanced = True

    # One entry covers the document decision and any status it caused
    record_audit(
        session,
        actor,
        "DOCUMENT_VERIFIED",
        "document",
        document_id,
        old_values={"verification_status": result.old_status, "application_status": old_application_status},
        new_values={
            "verification_status": result.verification_status,
            "rejection_reason": result.rejection_reason,
            "application_id": application.id,
            "application_status": application.status,
            "auto_advanced": auto_advanced,
        },
    )
    _log_transition("document verified", actor, document_id=document_id, outcome=status)

    if auto_advanced:
        _log_transition("application verified", None, application_id=application.id)
        customer, _ = await _parties(session, application)
        if customer is not None:
            notify(
                "documents_verified",
                customer.email,
                {"application_number": application.application_number, "customer_name": customer.full_name},
            )
    await session.flush()
    return result


async def update_status(
    session: AsyncSession,
    actor: ActorContext,
    application_id: str,
    target: str,
    remarks: str | None = None,
) -> TransitionResult:
    """Operator moves an application along a legal edge by hand."""
    require_capability(actor, Capability.UPDATE_STATUS)
    if target not in OPERATOR_STATUS_TARGETS:
        raise ValidationError("Invalid status for operator", status=target)
    application = await marketplace.get_application(session, application_id, for_update=True)
    old_status = application.status
    states.ensure_transition(old_status, target)

    rejected_offers: list[str] = []
    if target == states.REJECTED:
        rejected_offers = await marketplace.reject_open_offers(session, application.id)
    application.status = target
    if remarks:
        application.operator_remarks = remarks
    application.updated_at = utcnow()
    await session.flush()

    record_audit(
        session,
        actor,
        "STATUS_UPDATE",
        "loan_application",
        application.id,
        old_values={"status": old_status},
        new_values={"status": target, "remarks": remarks, "rejected_offer_ids": rejected_offers or None},
    )
    _log_transition("status updated", actor, application_id=application.id, old_status=old_status, new_status=target)
    if target == states.REJECTED:
        customer, _ = await _parties(session, application)
        if customer is not None:
            notify(
                "application_rejected",
                customer.email,
                {"application_number": application.application_number, "remarks": remarks},
            )
    return TransitionResult(application_id=application.id, old_status=old_status, new_status=target)


async def reject_application(
    session: AsyncSession, actor: ActorContext, application_id: str, remarks: str | None = None
) -> TransitionResult:
    return await update_status(session, actor, application_id, states.REJECTED, remarks)


async def request_documents(
    session: AsyncSession, actor: ActorContext, application_id: str, document_names: list[str]
) -> TransitionResult:
    """
    Ask for more documents. Allowed from ``verified``, or from any pre-approval
    state when the calling banker's bank holds a distribution for the application.
    """
    require_capability(actor, Capability.REQUEST_DOCUMENTS)
    names = [d.strip() for d in document_names or [] if d and d.strip()]
    if not names:
        raise ValidationError("No documents specified")

    if actor.role == Role.BANKER:
        application, _, _ = await _banker_application(session, actor, application_id, for_update=True)
        allowed = application.status in states.PRE_APPROVAL_STATES
    else:
        application = await marketplace.get_application(session, application_id, for_update=True)
        allowed = application.status in (states.VERIFIED, states.DOCUMENT_REQUESTED)
    if not allowed:
        raise ConflictError(
            f"Documents cannot be requested while application is {application.status}",
            status=application.status,
        )
    old_status = application.status
    states.ensure_transition(old_status, states.DOCUMENT_REQUESTED)

    document_list = ", ".join(names)
    application.banker_remarks = document_list
    application.status = states.DOCUMENT_REQUESTED
    application.updated_at = utcnow()
    await session.flush()

    record_audit(
        session,
        actor,
        "DOCUMENTS_REQUESTED",
        "loan_application",
        application.id,
        old_values={"status": old_status},
        new_values={"status": states.DOCUMENT_REQUESTED, "requested_documents": names},
    )
    _log_transition("documents requested", actor, application_id=application.id)
    customer, connector = await _parties(session, application)
    payload = {"application_number": application.application_number, "documents": document_list}
    if connector is not None:
        notify("documents_requested", connector.email, payload)
    if customer is not None:
        notify("documents_requested", customer.email, payload)
    return TransitionResult(
        application_id=application.id, old_status=old_status, new_status=states.DOCUMENT_REQUESTED
    )


# ---------------------------------------------------------------------------
# Marketplace
# ---------------------------------------------------------------------------


async def distribute_application(
    session: AsyncSession,
    actor: ActorContext,
    application_id: str,
    bank_ids: list[str],
    due_hours: int | None = None,
) -> DistributionBatchResult:
    require_capability(actor, Capability.DISTRIBUTE)
    application = await marketplace.get_application(session, application_id, for_update=True)
    old = _snapshot(application)
    result = await marketplace.distribute(session, application, bank_ids, actor.actor_id, due_hours)

    record_audit(
        session,
        actor,
        "APPLICATION_DISTRIBUTED",
        "loan_application",
        application.id,
        old_values=old,
        new_values={
            "distributed_to_banks": result.distributed_bank_ids,
            "skipped_banks": result.skipped_bank_ids,
            "response_due_date": result.response_due_date,
            "marketplace_status": result.marketplace_status,
        },
    )
    _log_transition(
        "application distributed",
        actor,
        application_id=application.id,
        bank_count=len(result.distributed_bank_ids),
    )
    banks = (
        await session.execute(select(Bank).where(Bank.id.in_(result.distributed_bank_ids)))
    ).scalars().all()
    for bank in banks:
        notify(
            "application_distributed",
            bank.contact_email,
            {
                "application_number": application.application_number,
                "bank_name": bank.name,
                "response_due_date": result.response_due_date.isoformat(),
            },
        )
    return result


async def list_distributed_applications(
    session: AsyncSession, actor: ActorContext
) -> list[tuple[LoanApplication, ApplicationDistribution]]:
    require_capability(actor, Capability.VIEW_DISTRIBUTED)
    banker = await _banker_for(session, actor)
    result = await session.execute(
        select(LoanApplication, ApplicationDistribution)
        .join(ApplicationDistribution, ApplicationDistribution.loan_application_id == LoanApplication.id)
        .where(ApplicationDistribution.bank_id == banker.bank_id)
        .order_by(ApplicationDistribution.sent_at.desc())
    )
    return [(a, d) for a, d in result.all()]


async def view_application(session: AsyncSession, actor: ActorContext, application_id: str) -> dict[str, Any]:
    """Banker's read of a distributed application; the first read marks it viewed."""
    require_capability(actor, Capability.VIEW_DISTRIBUTED)
    application, banker, distribution = await _banker_application(session, actor, application_id)
    first_view = await marketplace.record_offer_view(session, application.id, banker.bank_id)
    if first_view:
        record_audit(
            session,
            actor,
            "APPLICATION_VIEWED",
            "application_distribution",
            distribution.id,
            old_values={"status": "sent"},
            new_values={"status": "viewed"},
        )
    docs = await documents.list_documents(session, application.id)
    own_offer = (
        await session.execute(
            select(LoanOffer).where(
                LoanOffer.loan_application_id == application.id,
                LoanOffer.bank_id == banker.bank_id,
            ).order_by(LoanOffer.created_at.desc())
        )
    ).scalars().first()
    return {
        "application": application,
        "distribution": distribution,
        "documents": docs,
        "offer": own_offer,
        "first_view": first_view,
    }


async def submit_offer(
    session: AsyncSession, actor: ActorContext, application_id: str, terms: OfferCreate
) -> LoanOffer:
    require_capability(actor, Capability.SUBMIT_OFFER)
    application, banker, _ = await _banker_application(session, actor, application_id, for_update=True)
    offer = await marketplace.create_offer(
        session,
        application,
        banker,
        terms.offered_amount,
        terms.interest_rate,
        terms.tenure_months,
        terms.processing_fee,
        terms_conditions=terms.terms_conditions,
        special_features=terms.special_features,
        remarks=terms.remarks,
    )
    record_audit(
        session,
        actor,
        "OFFER_SUBMITTED",
        "loan_offer",
        offer.id,
        new_values={
            "application_id": application.id,
            "bank_id": banker.bank_id,
            "offered_amount": offer.offered_amount,
            "interest_rate": offer.interest_rate,
            "tenure_months": offer.tenure_months,
        },
    )
    _log_transition("offer submitted", actor, application_id=application.id, offer_id=offer.id)
    _, connector = await _parties(session, application)
    if connector is not None:
        notify("offer_received", connector.email, {"application_number": application.application_number})
    return offer


async def revise_offer(
    session: AsyncSession, actor: ActorContext, application_id: str, terms: OfferCreate
) -> LoanOffer:
    require_capability(actor, Capability.SUBMIT_OFFER)
    application, banker, _ = await _banker_application(session, actor, application_id, for_update=True)
    offer, previous = await marketplace.revise_offer(
        session,
        application,
        banker,
        terms.offered_amount,
        terms.interest_rate,
        terms.tenure_months,
        terms.processing_fee,
        terms_conditions=terms.terms_conditions,
        special_features=terms.special_features,
        remarks=terms.remarks,
    )
    record_audit(
        session,
        actor,
        "OFFER_REVISED",
        "loan_offer",
        offer.id,
        old_values=previous,
        new_values={
            "offered_amount": offer.offered_amount,
            "interest_rate": offer.interest_rate,
            "tenure_months": offer.tenure_months,
        },
    )
    _log_transition("offer revised", actor, application_id=application.id, offer_id=offer.id)
    return offer


async def list_competing_offers(
    session: AsyncSession, actor: ActorContext, application_id: str
) -> list[LoanOffer]:
    require_capability(actor, Capability.LIST_OFFERS)
    if actor.role == Role.BANKER:
        application, banker, _ = await _banker_application(session, actor, application_id)
        return await marketplace.list_competing_offers(session, application.id, excluding_banker_id=banker.id)
    application = await marketplace.get_application(session, application_id)
    return await marketplace.list_competing_offers(session, application.id)


async def select_offer(
    session: AsyncSession, actor: ActorContext, application_id: str, offer_id: str
) -> ApprovalResult:
    """Approve on the chosen offer's terms, reject its siblings and accrue commission."""
    require_capability(actor, Capability.SELECT_OFFER)
    if not offer_id:
        raise ValidationError("Offer id is required")
    application = await marketplace.get_application(session, application_id, for_update=True)
    old = _snapshot(application)

    result = await marketplace.select_offer(session, application.id, offer_id)
    if application.connector_id:
        record = await commission.accrue(session, application)
        result.commission_id = record.id

    record_audit(
        session,
        actor,
        "OFFER_SELECTED",
        "loan_application",
        application.id,
        old_values=old,
        new_values={
            **_snapshot(application),
            "approved_amount": result.approved_amount,
            "approved_interest_rate": result.approved_interest_rate,
            "approved_tenure_months": result.approved_tenure_months,
            "rejected_offer_ids": result.rejected_offer_ids,
            "commission_id": result.commission_id,
        },
    )
    _log_transition("offer selected", actor, application_id=application.id, offer_id=offer_id)
    customer, connector = await _parties(session, application)
    payload = {
        "application_number": application.application_number,
        "approved_amount": str(result.approved_amount),
        "interest_rate": str(result.approved_interest_rate),
        "tenure_months": result.approved_tenure_months,
    }
    if customer is not None:
        notify("offer_selected", customer.email, payload)
    if connector is not None:
        notify("offer_selected", connector.email, payload)
    return result


# ---------------------------------------------------------------------------
# Disbursement & commission
# ---------------------------------------------------------------------------


def _mask_account(account_number: str | None) -> str | None:
    if not account_number:
        return None
    return f"****{account_number[-4:]}"


async def disburse(
    session: AsyncSession, actor: ActorContext, application_id: str, data: DisburseRequest
) -> DisbursementResult:
    require_capability(actor, Capability.DISBURSE)
    application = await marketplace.get_application(session, application_id, for_update=True)
    if actor.role == Role.BANKER:
        banker = await _banker_for(session, actor)
        selected = await session.get(LoanOffer, application.selected_offer_id) if application.selected_offer_id else None
        if selected is None or selected.bank_id != banker.bank_id:
            raise AccessDeniedError("Only the bank holding the selected offer can disburse")

    states.ensure_transition(application.status, states.DISBURSED)
    amount = Decimal(data.disbursement_amount)
    if amount <= 0:
        raise ValidationError("Disbursement amount must be positive")
    if application.approved_amount is not None and amount > Decimal(application.approved_amount):
        raise ValidationError("Disbursement amount cannot exceed approved amount")

    now = utcnow()
    old_status = application.status
    application.status = states.DISBURSED
    application.disbursed_amount = amount
    application.disbursed_at = now
    application.disbursement_details = {
        "bank_name": data.bank_name,
        "account_number": _mask_account(data.account_number),
        "ifsc_code": data.ifsc_code,
        "transaction_reference": data.transaction_reference,
        "disbursement_date": (data.disbursement_date or now).isoformat(),
        "remarks": data.remarks,
        "disbursed_by": actor.actor_id,
    }
    application.updated_at = now
    await session.flush()

    record = None
    if application.connector_id:
        record = await commission.accrue(session, application)
        await _count_case(session, application.connector_id, Connector.total_approved_cases)

    record_audit(
        session,
        actor,
        "LOAN_DISBURSED",
        "loan_application",
        application.id,
        old_values={"status": old_status},
        new_values={
            "status": states.DISBURSED,
            "application_number": application.application_number,
            "disbursed_amount": amount,
            "transaction_reference": data.transaction_reference,
            "account_number": _mask_account(data.account_number),
            "commission_id": record.id if record else None,
        },
    )
    _log_transition("loan disbursed", actor, application_id=application.id)
    customer, _ = await _parties(session, application)
    if customer is not None:
        notify(
            "loan_disbursed",
            customer.email,
            {"application_number": application.application_number, "amount": str(amount)},
        )
    return DisbursementResult(
        application_id=application.id,
        application_number=application.application_number,
        disbursed_amount=amount,
        commission_id=record.id if record else None,
        commission_amount=record.commission_amount if record else None,
        transaction_reference=data.transaction_reference,
    )


async def pay_commissions(
    session: AsyncSession, actor: ActorContext, data: CommissionPayRequest
) -> PaymentResult:
    """Settle a batch of earned commissions; one audit entry summarises the batch."""
    require_capability(actor, Capability.PAY_COMMISSION)
    result = await commission.pay_batch(
        session,
        data.commission_ids,
        data.payment_reference,
        paid_by=actor.actor_id,
        payment_method=data.payment_method,
        remarks=data.remarks,
    )
    record_audit(
        session,
        actor,
        "COMMISSION_BATCH_PAID",
        "commission_batch",
        result.payment_id,
        old_values={"status": "earned"},
        new_values={
            "status": "paid",
            "commission_ids": result.paid_ids,
            "skipped_ids": result.skipped_ids,
            "total_amount": result.total_amount,
            "payment_reference": result.payment_reference,
            "payment_method": data.payment_method,
        },
    )
    _log_transition(
        "commission batch paid",
        actor,
        payment_reference=result.payment_reference,
        paid_count=result.paid_count,
        total_amount=str(result.total_amount),
    )

    connectors = (
        await session.execute(
            select(Connector)
            .join(CommissionRecord, CommissionRecord.connector_id == Connector.id)
            .where(CommissionRecord.id.in_(result.paid_ids))
            .distinct()
        )
    ).scalars().all()
    for connector in connectors:
        notify(
            "commission_paid",
            connector.email,
            {"payment_reference": result.payment_reference, "agent_code": connector.agent_code},
        )
    return result


async def commission_overview(
    session: AsyncSession, actor: ActorContext, connector_id: str | None = None, status: str | None = None
) -> tuple[CommissionSummary | None, list[CommissionRecord]]:
    """Connectors see only their own records; admins may filter by connector."""
    require_capability(actor, Capability.VIEW_COMMISSIONS)
    if actor.role == Role.CONNECTOR:
        connector_id = (await _connector_for(session, actor)).id
    records = await commission.list_commissions(session, connector_id=connector_id, status=status)
    summary = await commission.connector_commission_summary(session, connector_id) if connector_id else None
    return summary, records


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_applications(
    session: AsyncSession, actor: ActorContext, status: str | None = None
) -> list[LoanApplication]:
    stmt = select(LoanApplication).order_by(LoanApplication.created_at.desc())
    if actor.role == Role.CONNECTOR:
        connector = await _connector_for(session, actor)
        stmt = stmt.where(LoanApplication.connector_id == connector.id)
    elif actor.role == Role.BANKER:
        return [a for a, _ in await list_distributed_applications(session, actor)
                if status is None or a.status == status]
    if status:
        stmt = stmt.where(LoanApplication.status == status)
    return list((await session.execute(stmt)).scalars().all())


async def get_application(session: AsyncSession, actor: ActorContext, application_id: str) -> LoanApplication:
    if actor.role == Role.BANKER:
        application, _, _ = await _banker_application(session, actor, application_id)
        return application
    application = await marketplace.get_application(session, application_id)
    if actor.role == Role.CONNECTOR:
        connector = await _connector_for(session, actor)
        if application.connector_id != connector.id:
            raise NotFoundError("application", application_id)
    return application
