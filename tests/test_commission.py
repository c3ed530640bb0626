"""
Commission engine: accrual, batch settlement and connector totals.
Run: python -m pytest tests/test_commission.py -v
"""
import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from sqlalchemy import func, select

from helpers import ADMIN, CONNECTOR, HDFC_BANKER, OPERATOR, MarketplaceTestCase
from models import CommissionPayment, CommissionRecord, SystemLog
from schemas.commission import CommissionPayRequest
from services import commission, workflow
from services.exceptions import (
    AccessDeniedError,
    ConflictError,
    NoEligibleRecordsError,
    ValidationError,
)
from utils.clock import utcnow


class TestComputeCommission(unittest.TestCase):
    def test_percentage_of_basis(self):
        self.assertEqual(commission.compute_commission(Decimal("500000"), Decimal("1.50")), Decimal("7500.00"))

    def test_rounds_half_up_to_cents(self):
        self.assertEqual(commission.compute_commission(Decimal("333.33"), Decimal("1.5")), Decimal("5.00"))


class TestPayBatch(MarketplaceTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.ids = []
        for n, (amount, status) in enumerate(
            [(Decimal("1000.00"), "earned"), (Decimal("2000.00"), "paid"), (Decimal("3000.00"), "earned")]
        ):
            app = await self.submit()
            record = CommissionRecord(
                id=f"comm-test-{n}",
                loan_application_id=app.id,
                connector_id="conn-demo",
                commission_percentage=Decimal("1.50"),
                commission_amount=amount,
                status=status,
                payment_reference="OLD-REF" if status == "paid" else None,
                paid_at=utcnow() if status == "paid" else None,
                created_at=utcnow(),
            )
            self.session.add(record)
            self.ids.append(record.id)
        await self.session.commit()

    def _request(self, ids, reference="NEFT-2024-001"):
        return CommissionPayRequest(commission_ids=ids, payment_reference=reference, payment_method="neft")

    async def test_pays_only_earned_records(self):
        c1, c2, c3 = self.ids
        result = await self.unit(workflow.pay_commissions, ADMIN, self._request([c1, c2, c3]))

        self.assertEqual(sorted(result.paid_ids), sorted([c1, c3]))
        self.assertEqual(result.skipped_ids, [c2])
        self.assertEqual(result.total_amount, Decimal("4000.00"))

        paid = await self.reload(CommissionRecord, c1)
        self.assertEqual(paid.status, "paid")
        self.assertEqual(paid.payment_reference, "NEFT-2024-001")
        self.assertEqual(paid.paid_by, ADMIN.actor_id)
        untouched = await self.reload(CommissionRecord, c2)
        self.assertEqual(untouched.payment_reference, "OLD-REF")

        payment = (await self.session.execute(select(CommissionPayment))).scalar_one()
        self.assertEqual(payment.commission_count, 2)
        self.assertEqual(payment.total_amount, Decimal("4000.00"))

        audit = (
            await self.session.execute(select(SystemLog).where(SystemLog.action == "COMMISSION_BATCH_PAID"))
        ).scalars().all()
        self.assertEqual(len(audit), 1)
        self.assertEqual(sorted(audit[0].new_values["commission_ids"]), sorted([c1, c3]))

    async def test_repeat_batch_finds_nothing_eligible(self):
        await self.unit(workflow.pay_commissions, ADMIN, self._request(self.ids))
        with self.assertRaises(NoEligibleRecordsError):
            await self.unit(workflow.pay_commissions, ADMIN, self._request(self.ids, "NEFT-2024-002"))
        count = (await self.session.execute(select(func.count(CommissionPayment.id)))).scalar_one()
        self.assertEqual(count, 1)

    async def test_reused_reference_is_conflict(self):
        c1, _, c3 = self.ids
        await self.unit(workflow.pay_commissions, ADMIN, self._request([c1]))
        with self.assertRaises(ConflictError):
            await self.unit(workflow.pay_commissions, ADMIN, self._request([c3]))
        record = await self.reload(CommissionRecord, c3)
        self.assertEqual(record.status, "earned")

    async def test_reference_committed_concurrently_is_conflict(self):
        c1, _, c3 = self.ids
        await self.unit(workflow.pay_commissions, ADMIN, self._request([c1]))
        # The other batch commits between the reference check and the insert
        with patch("services.commission._reference_taken", new=AsyncMock(return_value=False)):
            with self.assertRaises(ConflictError):
                await self.unit(workflow.pay_commissions, ADMIN, self._request([c3]))
        record = await self.reload(CommissionRecord, c3)
        self.assertEqual(record.status, "earned")
        self.assertIsNone(record.payment_reference)
        count = (await self.session.execute(select(func.count(CommissionPayment.id)))).scalar_one()
        self.assertEqual(count, 1)

    async def test_empty_selection(self):
        with self.assertRaises(ValidationError):
            await self.unit(workflow.pay_commissions, ADMIN, self._request([]))

    async def test_blank_reference(self):
        with self.assertRaises(ValidationError):
            await self.unit(workflow.pay_commissions, ADMIN, self._request(self.ids, "  "))

    async def test_only_admins_pay(self):
        for actor in (CONNECTOR, OPERATOR):
            with self.assertRaises(AccessDeniedError):
                await self.unit(workflow.pay_commissions, actor, self._request(self.ids))

    async def test_connector_summary(self):
        summary, records = await self.unit(workflow.commission_overview, CONNECTOR)
        self.assertEqual(len(records), 3)
        self.assertEqual(summary.earned_count, 2)
        self.assertEqual(summary.earned_amount, Decimal("4000.00"))
        self.assertEqual(summary.paid_count, 1)
        self.assertEqual(summary.paid_amount, Decimal("2000.00"))

    async def test_admin_filters_by_status(self):
        summary, records = await self.unit(workflow.commission_overview, ADMIN, status="earned")
        self.assertIsNone(summary)
        self.assertEqual(sorted(r.id for r in records), sorted([self.ids[0], self.ids[2]]))


class TestAccrual(MarketplaceTestCase):
    async def _approved_application(self):
        app = await self.submit()
        await self.distribute(app.id, ("bank-hdfc",))
        offer = await self.offer(HDFC_BANKER, app.id, amount="400000", rate="9.50")
        result = await self.unit(workflow.select_offer, OPERATOR, app.id, offer.id)
        return app.id, result

    async def test_selection_accrues_on_approved_amount(self):
        app_id, result = await self._approved_application()
        record = await self.reload(CommissionRecord, result.commission_id)
        self.assertEqual(record.status, "earned")
        self.assertEqual(record.loan_application_id, app_id)
        self.assertEqual(record.commission_amount, Decimal("6000.00"))

    async def test_accrue_twice_keeps_one_record(self):
        app_id, result = await self._approved_application()
        app = await workflow.get_application(self.session, OPERATOR, app_id)
        again = await commission.accrue(self.session, app)
        await self.session.commit()
        self.assertEqual(again.id, result.commission_id)
        count = (
            await self.session.execute(
                select(func.count(CommissionRecord.id)).where(CommissionRecord.loan_application_id == app_id)
            )
        ).scalar_one()
        self.assertEqual(count, 1)


if __name__ == "__main__":
    unittest.main()
