from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from database import Base
from utils.clock import utcnow


class CommissionRecord(Base):
    __tablename__ = "commission_records"
    __table_args__ = (
        UniqueConstraint("loan_application_id", "connector_id", name="uq_commission_application_connector"),
    )

    id = Column(String(64), primary_key=True, index=True)
    loan_application_id = Column(
        String(64), ForeignKey("loan_applications.id"), nullable=False, index=True
    )
    connector_id = Column(String(64), ForeignKey("connectors.id"), nullable=False, index=True)
    commission_percentage = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(Numeric(15, 2), nullable=False)
    status = Column(String(16), nullable=False, default="earned", index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(String(64), nullable=True)
    payment_reference = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CommissionPayment(Base):
    """One settlement batch; the records it paid share its reference."""

    __tablename__ = "commission_payments"

    id = Column(String(64), primary_key=True, index=True)
    payment_reference = Column(String(255), unique=True, nullable=False)
    payment_method = Column(String(32), nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False)
    commission_count = Column(Integer, nullable=False)
    paid_by = Column(String(64), nullable=False)
    remarks = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
