"""
Seed reference data: banks with one banker each, loan categories, document
types, and a demo connector with one customer.
Run: python -m scripts.seed_marketplace (from the project root).
"""
import asyncio
import os
import sys
from decimal import Decimal

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.ext.asyncio import AsyncSession

from database import AsyncSessionLocal, init_db
from models import Bank, Banker, Connector, Customer, DocumentType, LoanCategory


BANKS_DATA = [
    {
        "id": "bank-hdfc",
        "name": "HDFC Bank",
        "code": "HDFC",
        "contact_email": "loans@hdfc.example",
        "banker": {"id": "banker-hdfc", "user_id": "u-banker-hdfc", "name": "Anita Rao", "max_approval_limit": None},
    },
    {
        "id": "bank-icici",
        "name": "ICICI Bank",
        "code": "ICICI",
        "contact_email": "loans@icici.example",
        "banker": {"id": "banker-icici", "user_id": "u-banker-icici", "name": "Vikram Shah", "max_approval_limit": Decimal("2000000")},
    },
    {
        "id": "bank-axis",
        "name": "Axis Bank",
        "code": "AXIS",
        "contact_email": "loans@axis.example",
        "banker": {"id": "banker-axis", "user_id": "u-banker-axis", "name": "Meera Iyer", "max_approval_limit": Decimal("1000000")},
    },
]

CATEGORIES_DATA = [
    {
        "id": "cat-personal",
        "name": "Personal Loan",
        "min_amount": Decimal("50000"),
        "max_amount": Decimal("2500000"),
        "interest_rate_min": Decimal("10.50"),
        "interest_rate_max": Decimal("24.00"),
        "max_tenure_months": 60,
    },
    {
        "id": "cat-home",
        "name": "Home Loan",
        "min_amount": Decimal("500000"),
        "max_amount": Decimal("50000000"),
        "interest_rate_min": Decimal("8.25"),
        "interest_rate_max": Decimal("11.00"),
        "max_tenure_months": 360,
    },
]

DOCUMENT_TYPES_DATA = [
    {"id": "doc-pan", "name": "PAN Card", "is_required": True},
    {"id": "doc-aadhaar", "name": "Aadhaar Card", "is_required": True},
    {"id": "doc-payslip", "name": "Salary Slips", "is_required": False},
]

CONNECTOR_DATA = {
    "id": "conn-demo",
    "user_id": "u-connector-demo",
    "agent_code": "AGT001",
    "name": "Demo Connector",
    "email": "connector@example.com",
    "commission_percentage": Decimal("1.50"),
    "customer": {
        "id": "cust-demo",
        "first_name": "Rahul",
        "last_name": "Verma",
        "phone": "9800000000",
        "email": "rahul.verma@example.com",
        "city": "Pune",
        "state": "Maharashtra",
        "pincode": "411001",
        "aadhar_number": "123456789012",
        "pan_number": "ABCDE1234F",
    },
}


async def seed_reference_data(session: AsyncSession) -> None:
    """Insert every seed row that is not already present (by primary key)."""
    for data in BANKS_DATA:
        if await session.get(Bank, data["id"]):
            print(f"Bank {data['id']} already exists, skipping")
            continue
        session.add(Bank(id=data["id"], name=data["name"], code=data["code"], contact_email=data["contact_email"]))
        await session.flush()
        b = data["banker"]
        session.add(
            Banker(
                id=b["id"],
                user_id=b["user_id"],
                bank_id=data["id"],
                name=b["name"],
                email=f"{b['user_id']}@bank.example",
                max_approval_limit=b["max_approval_limit"],
            )
        )
        print(f"Seeded bank: {data['name']}")

    for data in CATEGORIES_DATA:
        if not await session.get(LoanCategory, data["id"]):
            session.add(LoanCategory(**data))

    for data in DOCUMENT_TYPES_DATA:
        if not await session.get(DocumentType, data["id"]):
            session.add(DocumentType(**data))

    if not await session.get(Connector, CONNECTOR_DATA["id"]):
        fields = {k: v for k, v in CONNECTOR_DATA.items() if k != "customer"}
        session.add(Connector(**fields))
        await session.flush()
        session.add(Customer(connector_id=CONNECTOR_DATA["id"], **CONNECTOR_DATA["customer"]))
    await session.flush()


async def seed():
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_reference_data(session)
        await session.commit()
    print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(seed())
