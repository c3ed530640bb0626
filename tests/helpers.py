"""
Shared fixtures: a fresh in-memory database per test, seeded with the demo
banks, bankers, categories, document types and connector.
"""
import unittest
from decimal import Decimal

from config import Settings
from database import build_engine, build_sessionmaker, init_db
from schemas.application import ApplicationCreate
from schemas.document import DocumentAttach
from schemas.marketplace import OfferCreate
from scripts.seed_marketplace import seed_reference_data
from services import workflow
from services.authorization import ActorContext, Role
from services.notifications import set_notifier

CONNECTOR = ActorContext("u-connector-demo", Role.CONNECTOR, "10.0.0.1")
OPERATOR = ActorContext("u-operator", Role.OPERATOR, "10.0.0.2")
HDFC_BANKER = ActorContext("u-banker-hdfc", Role.BANKER)
ICICI_BANKER = ActorContext("u-banker-icici", Role.BANKER)
AXIS_BANKER = ActorContext("u-banker-axis", Role.BANKER)
ADMIN = ActorContext("u-admin", Role.ADMIN)

REQUIRED_DOCUMENT_TYPES = ("doc-pan", "doc-aadhaar")


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, template, recipient, subject, data):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((template, recipient, subject, data))

    def templates(self):
        return [t for t, *_ in self.sent]


class MarketplaceTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = build_engine(Settings(database_url="sqlite+aiosqlite:///:memory:"))
        await init_db(self.engine)
        self.sessionmaker = build_sessionmaker(self.engine)
        self.session = self.sessionmaker()
        await seed_reference_data(self.session)
        await self.session.commit()
        self.notifier = RecordingNotifier()
        self._previous_notifier = set_notifier(self.notifier)

    async def asyncTearDown(self):
        set_notifier(self._previous_notifier)
        await self.session.close()
        await self.engine.dispose()

    async def unit(self, operation, *args, **kwargs):
        """Run one operation as a unit of work, the way ``get_db`` does per request."""
        try:
            result = await operation(self.session, *args, **kwargs)
            await self.session.commit()
            return result
        except Exception:
            await self.session.rollback()
            raise

    async def reload(self, model, pk):
        return await self.session.get(model, pk, populate_existing=True)

    async def submit(self, amount="500000", customer_id="cust-demo", category_id="cat-personal"):
        body = ApplicationCreate(
            customer_id=customer_id,
            loan_category_id=category_id,
            requested_amount=Decimal(amount),
            purpose="Home renovation",
            monthly_income=Decimal("85000"),
            employment_type="salaried",
        )
        return await self.unit(workflow.submit_application, CONNECTOR, body)

    async def attach(self, application_id, document_type_id="doc-pan"):
        body = DocumentAttach(
            document_type_id=document_type_id,
            storage_path=f"/uploads/{application_id}/{document_type_id}.pdf",
            file_name=f"{document_type_id}.pdf",
        )
        return await self.unit(workflow.attach_document, CONNECTOR, application_id, body)

    async def verify_required(self, application_id):
        for type_id in REQUIRED_DOCUMENT_TYPES:
            doc = await self.attach(application_id, type_id)
            await self.unit(workflow.verify_document, OPERATOR, doc.id, "verified")

    async def distribute(self, application_id, bank_ids=("bank-hdfc", "bank-icici"), due_hours=None):
        return await self.unit(
            workflow.distribute_application, OPERATOR, application_id, list(bank_ids), due_hours
        )

    async def offer(self, actor, application_id, amount="500000", rate="9.50", tenure=24):
        terms = OfferCreate(
            offered_amount=Decimal(amount),
            interest_rate=Decimal(rate),
            tenure_months=tenure,
            processing_fee=Decimal("2500"),
        )
        return await self.unit(workflow.submit_offer, actor, application_id, terms)
