"""
HTTP surface: routes, identity headers, camelCase payloads and error mapping.
Run: python -m pytest tests/test_api.py -v
"""
import unittest
from decimal import Decimal

from httpx import ASGITransport, AsyncClient

from database import get_db
from helpers import MarketplaceTestCase
from main import app


def headers(user_id, role):
    return {"X-User-Id": user_id, "X-User-Role": role, "X-Forwarded-For": "203.0.113.7"}


CONNECTOR_H = headers("u-connector-demo", "connector")
OPERATOR_H = headers("u-operator", "operator")
HDFC_H = headers("u-banker-hdfc", "banker")
ICICI_H = headers("u-banker-icici", "banker")
ADMIN_H = headers("u-admin", "admin")


class TestApi(MarketplaceTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.session.close()

        async def override_get_db():
            async with self.sessionmaker() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await super().asyncTearDown()

    async def _create_application(self, amount=500000):
        r = await self.client.post(
            "/api/applications",
            json={
                "customerId": "cust-demo",
                "loanCategoryId": "cat-personal",
                "requestedAmount": amount,
                "purpose": "Wedding",
                "employmentType": "salaried",
            },
            headers=CONNECTOR_H,
        )
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()

    async def test_health(self):
        r = await self.client.get("/health")
        self.assertEqual(r.json(), {"status": "ok"})

    async def test_missing_identity_headers(self):
        r = await self.client.get("/api/applications")
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["code"], "ACCESS_DENIED")
        self.assertFalse(r.json()["success"])

    async def test_create_and_read_application(self):
        created = await self._create_application()
        self.assertEqual(created["status"], "submitted")
        self.assertEqual(created["marketplaceStatus"], "pending")
        self.assertEqual(Decimal(created["requestedAmount"]), Decimal("500000"))

        r = await self.client.get(f"/api/applications/{created['id']}", headers=OPERATOR_H)
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["applicationNumber"], created["applicationNumber"])
        self.assertEqual(body["documents"], [])
        self.assertFalse(body["documentReadiness"]["ready"])

    async def test_snake_case_body_is_accepted(self):
        r = await self.client.post(
            "/api/applications",
            json={"customer_id": "cust-demo", "loan_category_id": "cat-personal", "requested_amount": 100000},
            headers=CONNECTOR_H,
        )
        self.assertEqual(r.status_code, 201, r.text)

    async def test_document_verification_routes(self):
        created = await self._create_application()
        r = await self.client.post(
            f"/api/applications/{created['id']}/documents",
            json={"documentTypeId": "doc-pan", "storagePath": "/uploads/pan.pdf", "fileName": "pan.pdf"},
            headers=CONNECTOR_H,
        )
        self.assertEqual(r.status_code, 201, r.text)
        doc_id = r.json()["id"]

        r = await self.client.put(
            f"/api/operator/documents/{doc_id}/verify", json={"status": "rejected"}, headers=OPERATOR_H
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "VALIDATION_ERROR")

        r = await self.client.put(
            f"/api/operator/documents/{doc_id}/verify",
            json={"status": "rejected", "remarks": "Unreadable"},
            headers=OPERATOR_H,
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["verificationStatus"], "rejected")
        self.assertEqual(r.json()["applicationStatus"], "under_verification")

    async def test_full_journey_over_http(self):
        created = await self._create_application()
        app_id = created["id"]

        r = await self.client.post(
            f"/api/operator/applications/{app_id}/distribute",
            json={"bankIds": ["bank-hdfc", "bank-icici"]},
            headers=OPERATOR_H,
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["distributedCount"], 2)

        r = await self.client.post(
            f"/api/operator/applications/{app_id}/distribute",
            json={"bankIds": ["bank-hdfc"]},
            headers=OPERATOR_H,
        )
        self.assertEqual(r.status_code, 409)

        r = await self.client.get("/api/banker/applications", headers=HDFC_H)
        self.assertEqual([a["id"] for a in r.json()], [app_id])
        r = await self.client.get(f"/api/banker/applications/{app_id}", headers=HDFC_H)
        self.assertEqual(r.json()["distribution"]["status"], "viewed")

        terms_x = {"offeredAmount": 500000, "interestRate": 9.5, "tenureMonths": 24}
        terms_y = {"offeredAmount": 500000, "interestRate": 9.2, "tenureMonths": 36}
        r = await self.client.post(f"/api/banker/applications/{app_id}/offer", json=terms_x, headers=HDFC_H)
        self.assertEqual(r.status_code, 201, r.text)
        x_id = r.json()["id"]
        r = await self.client.post(f"/api/banker/applications/{app_id}/offer", json=terms_y, headers=ICICI_H)
        y_id = r.json()["id"]

        r = await self.client.get(f"/api/banker/applications/{app_id}/offers", headers=HDFC_H)
        self.assertEqual([o["id"] for o in r.json()], [y_id])

        r = await self.client.post(
            f"/api/operator/applications/{app_id}/select-offer", json={"offerId": y_id}, headers=OPERATOR_H
        )
        self.assertEqual(r.status_code, 200, r.text)
        approval = r.json()
        self.assertEqual(approval["selectedOfferId"], y_id)
        self.assertEqual(approval["rejectedOfferIds"], [x_id])
        self.assertEqual(approval["approvedTenureMonths"], 36)

        r = await self.client.post(
            f"/api/operator/applications/{app_id}/select-offer", json={"offerId": x_id}, headers=OPERATOR_H
        )
        self.assertEqual(r.status_code, 409)

        r = await self.client.put(
            f"/api/admin/disbursements/{app_id}/disburse",
            json={"disbursementAmount": 500000, "transactionReference": "UTR-1", "accountNumber": "99887766"},
            headers=ADMIN_H,
        )
        self.assertEqual(r.status_code, 200, r.text)
        commission_id = r.json()["commissionId"]

        r = await self.client.get("/api/connector/commissions", headers=CONNECTOR_H)
        self.assertEqual(r.json()["summary"]["earnedCount"], 1)

        r = await self.client.post(
            "/api/admin/commissions/pay",
            json={"commissionIds": [commission_id], "paymentReference": "NEFT-HTTP-1"},
            headers=ADMIN_H,
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["paidCount"], 1)
        self.assertEqual(Decimal(r.json()["totalAmount"]), Decimal("7500.00"))

        r = await self.client.post(
            "/api/admin/commissions/pay",
            json={"commissionIds": [commission_id], "paymentReference": "NEFT-HTTP-2"},
            headers=ADMIN_H,
        )
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["code"], "NO_ELIGIBLE_RECORDS")

        r = await self.client.get("/api/admin/commissions", params={"status": "paid"}, headers=ADMIN_H)
        self.assertEqual([c["id"] for c in r.json()["commissions"]], [commission_id])

    async def test_customer_registration_routes(self):
        body = {
            "firstName": "Priya",
            "lastName": "Sharma",
            "phone": "9876543210",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
            "aadharNumber": "234567890123",
            "panNumber": "FGHIJ5678K",
            "dateOfBirth": "1990-04-12",
        }
        r = await self.client.post("/api/customers", json=body, headers=CONNECTOR_H)
        self.assertEqual(r.status_code, 201, r.text)
        created = r.json()
        self.assertEqual(created["fullName"], "Priya Sharma")
        self.assertEqual(created["panNumber"], "******678K")
        self.assertEqual(created["dateOfBirth"], "1990-04-12")

        r = await self.client.post("/api/customers", json=body, headers=CONNECTOR_H)
        self.assertEqual(r.status_code, 409)

        r = await self.client.post("/api/customers", json={**body, "pincode": "56"}, headers=CONNECTOR_H)
        self.assertEqual(r.status_code, 400)
        self.assertIn("pincode", r.json()["details"]["errors"])

        r = await self.client.post("/api/customers", json=body, headers=OPERATOR_H)
        self.assertEqual(r.status_code, 403)

        r = await self.client.get("/api/customers", params={"search": "priya", "limit": 5}, headers=OPERATOR_H)
        self.assertEqual(r.status_code, 200)
        self.assertEqual([c["id"] for c in r.json()["customers"]], [created["id"]])
        self.assertEqual(r.json()["pagination"], {"page": 1, "limit": 5, "total": 1, "pages": 1})

        r = await self.client.get("/api/connector/profile", headers=CONNECTOR_H)
        self.assertEqual(r.json()["totalCasesSubmitted"], 1)
        self.assertEqual(r.json()["totalApprovedCases"], 0)

    async def test_bank_admin_routes(self):
        r = await self.client.post(
            "/api/admin/banks", json={"name": "Kotak Mahindra Bank", "code": "KOTAK"}, headers=ADMIN_H
        )
        self.assertEqual(r.status_code, 201, r.text)
        bank_id = r.json()["id"]

        r = await self.client.post("/api/admin/banks", json={"name": "Kotak", "code": "KOTAK"}, headers=ADMIN_H)
        self.assertEqual(r.status_code, 409)
        r = await self.client.post("/api/admin/banks", json={"name": "Yes", "code": "YES"}, headers=OPERATOR_H)
        self.assertEqual(r.status_code, 403)

        r = await self.client.put(f"/api/admin/banks/{bank_id}/status", json={"status": "inactive"}, headers=ADMIN_H)
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["status"], "inactive")

        r = await self.client.get("/api/admin/banks", headers=OPERATOR_H)
        names = [b["name"] for b in r.json()]
        self.assertEqual(names, sorted(names))
        self.assertNotIn(bank_id, [b["id"] for b in r.json()])

        r = await self.client.get("/api/admin/banks", params={"include_inactive": "true"}, headers=ADMIN_H)
        self.assertIn(bank_id, [b["id"] for b in r.json()])

    async def test_connector_cannot_reach_admin_routes(self):
        r = await self.client.post(
            "/api/admin/commissions/pay",
            json={"commissionIds": ["x"], "paymentReference": "R"},
            headers=CONNECTOR_H,
        )
        self.assertEqual(r.status_code, 403)


if __name__ == "__main__":
    unittest.main()
