from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from database import Base
from utils.clock import utcnow


class ApplicationDistribution(Base):
    __tablename__ = "application_distributions"
    __table_args__ = (
        UniqueConstraint("loan_application_id", "bank_id", name="uq_distribution_application_bank"),
    )

    id = Column(String(64), primary_key=True, index=True)
    loan_application_id = Column(
        String(64), ForeignKey("loan_applications.id"), nullable=False, index=True
    )
    bank_id = Column(String(64), ForeignKey("banks.id"), nullable=False, index=True)
    operator_id = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False, default="sent")
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # Advisory only; nothing closes a distribution when this passes
    response_due_date = Column(DateTime(timezone=True), nullable=False)
    viewed_at = Column(DateTime(timezone=True), nullable=True)


class LoanOffer(Base):
    __tablename__ = "loan_offers"

    id = Column(String(64), primary_key=True, index=True)
    loan_application_id = Column(
        String(64), ForeignKey("loan_applications.id"), nullable=False, index=True
    )
    bank_id = Column(String(64), ForeignKey("banks.id"), nullable=False, index=True)
    banker_id = Column(String(64), ForeignKey("bankers.id"), nullable=False, index=True)
    offered_amount = Column(Numeric(15, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    tenure_months = Column(Integer, nullable=False)
    processing_fee = Column(Numeric(10, 2), nullable=False, default=0)
    monthly_emi = Column(Numeric(12, 2), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    terms_conditions = Column(Text, nullable=True)
    special_features = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
