from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from database import Base
from utils.clock import utcnow


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(String(64), primary_key=True, index=True)
    application_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(String(64), ForeignKey("customers.id"), nullable=False, index=True)
    connector_id = Column(String(64), ForeignKey("connectors.id"), nullable=True, index=True)
    loan_category_id = Column(String(64), ForeignKey("loan_categories.id"), nullable=False)

    requested_amount = Column(Numeric(15, 2), nullable=False)
    purpose = Column(Text, nullable=True)
    monthly_income = Column(Numeric(12, 2), nullable=True)
    employment_type = Column(String(32), nullable=True)

    status = Column(String(32), nullable=False, default="submitted", index=True)
    marketplace_status = Column(String(32), nullable=False, default="pending", index=True)
    # Plain reference; loan_offers already points back at this table
    selected_offer_id = Column(String(64), nullable=True)

    # Filled only once the application is approved / disbursed
    approved_amount = Column(Numeric(15, 2), nullable=True)
    approved_interest_rate = Column(Numeric(5, 2), nullable=True)
    approved_tenure_months = Column(Integer, nullable=True)
    disbursed_amount = Column(Numeric(15, 2), nullable=True)
    disbursement_details = Column(JSON, nullable=True)

    banker_remarks = Column(Text, nullable=True)
    operator_remarks = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
