"""
Full marketplace journey for a 500,000 personal loan, from submission to a
paid commission.
Run: python -m pytest tests/test_end_to_end.py -v
"""
import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from helpers import ADMIN, CONNECTOR, HDFC_BANKER, ICICI_BANKER, OPERATOR, MarketplaceTestCase
from models import ApplicationDistribution, CommissionRecord, LoanApplication, LoanOffer, SystemLog
from schemas.commission import CommissionPayRequest
from services import workflow
from utils.clock import utcnow


class TestMarketplaceJourney(MarketplaceTestCase):
    async def test_submit_to_commission_paid(self):
        app = await self.submit(amount="500000")
        app_id = app.id

        before = utcnow()
        distribution = await self.distribute(app_id, ("bank-hdfc", "bank-icici"), due_hours=48)
        self.assertEqual(sorted(distribution.distributed_bank_ids), ["bank-hdfc", "bank-icici"])
        rows = (
            await self.session.execute(
                select(ApplicationDistribution).where(ApplicationDistribution.loan_application_id == app_id)
            )
        ).scalars().all()
        self.assertEqual(len(rows), 2)
        for row in rows:
            delta = row.response_due_date.replace(tzinfo=None) - before.replace(tzinfo=None)
            self.assertAlmostEqual(delta.total_seconds(), timedelta(hours=48).total_seconds(), delta=5)

        x_offer = await self.offer(HDFC_BANKER, app_id, amount="500000", rate="9.5", tenure=24)
        y_offer = await self.offer(ICICI_BANKER, app_id, amount="500000", rate="9.2", tenure=36)
        x_offer_id, y_offer_id = x_offer.id, y_offer.id

        approval = await self.unit(workflow.select_offer, OPERATOR, app_id, y_offer_id)
        self.assertEqual(approval.rejected_offer_ids, [x_offer_id])

        app = await self.reload(LoanApplication, app_id)
        self.assertEqual(app.status, "approved")
        self.assertEqual(app.selected_offer_id, y_offer_id)
        self.assertEqual(app.approved_interest_rate, Decimal("9.2"))
        self.assertEqual(app.approved_tenure_months, 36)
        self.assertEqual((await self.reload(LoanOffer, x_offer_id)).status, "rejected")
        self.assertEqual((await self.reload(LoanOffer, y_offer_id)).status, "selected")

        record = await self.reload(CommissionRecord, approval.commission_id)
        self.assertEqual(record.status, "earned")
        self.assertEqual(record.connector_id, "conn-demo")
        self.assertEqual(record.commission_amount, Decimal("7500.00"))

        payment = await self.unit(
            workflow.pay_commissions,
            ADMIN,
            CommissionPayRequest(commission_ids=[record.id], payment_reference="NEFT-E2E-1"),
        )
        self.assertEqual(payment.paid_ids, [record.id])
        self.assertEqual(payment.total_amount, Decimal("7500.00"))
        record = await self.reload(CommissionRecord, record.id)
        self.assertEqual(record.status, "paid")

        summary, _ = await self.unit(workflow.commission_overview, CONNECTOR)
        self.assertEqual(summary.paid_amount, Decimal("7500.00"))
        self.assertEqual(summary.earned_count, 0)

        actions = (
            await self.session.execute(select(SystemLog.action).order_by(SystemLog.created_at, SystemLog.id))
        ).scalars().all()
        for expected in (
            "LOAN_APPLICATION_CREATED",
            "APPLICATION_DISTRIBUTED",
            "OFFER_SUBMITTED",
            "OFFER_SELECTED",
            "COMMISSION_BATCH_PAID",
        ):
            self.assertIn(expected, actions)
        self.assertEqual(actions.count("OFFER_SUBMITTED"), 2)


if __name__ == "__main__":
    unittest.main()
