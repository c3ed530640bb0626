from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from database import Base
from utils.clock import utcnow


class Connector(Base):
    __tablename__ = "connectors"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    agent_code = Column(String(50), unique=True, nullable=False)
    name = Column(String(256), nullable=False)
    email = Column(String(256), nullable=True)
    commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    total_cases_submitted = Column(Integer, nullable=False, default=0)
    total_approved_cases = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(64), primary_key=True, index=True)
    connector_id = Column(String(64), ForeignKey("connectors.id"), nullable=False, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(256), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(16), nullable=True)
    marital_status = Column(String(16), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(128), nullable=True)
    pincode = Column(String(6), nullable=True)
    # Identity numbers; one customer record per person across all connectors
    aadhar_number = Column(String(12), unique=True, nullable=True)
    pan_number = Column(String(10), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Bank(Base):
    __tablename__ = "banks"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    code = Column(String(20), unique=True, nullable=False)
    contact_email = Column(String(256), nullable=True)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Banker(Base):
    __tablename__ = "bankers"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    bank_id = Column(String(64), ForeignKey("banks.id"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    email = Column(String(256), nullable=True)
    # Null means no ceiling on what this banker may offer
    max_approval_limit = Column(Numeric(15, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class LoanCategory(Base):
    __tablename__ = "loan_categories"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    min_amount = Column(Numeric(15, 2), nullable=False)
    max_amount = Column(Numeric(15, 2), nullable=False)
    interest_rate_min = Column(Numeric(5, 2), nullable=True)
    interest_rate_max = Column(Numeric(5, 2), nullable=True)
    max_tenure_months = Column(Integer, nullable=True)
    status = Column(String(16), nullable=False, default="active")


class DocumentType(Base):
    __tablename__ = "document_types"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
