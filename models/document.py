from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from database import Base
from utils.clock import utcnow


class CustomerDocument(Base):
    __tablename__ = "customer_documents"

    id = Column(String(64), primary_key=True, index=True)
    loan_application_id = Column(
        String(64), ForeignKey("loan_applications.id"), nullable=False, index=True
    )
    document_type_id = Column(String(64), ForeignKey("document_types.id"), nullable=False)
    file_name = Column(String(256), nullable=True)
    # Reference handed back by the file storage service; bytes never live here
    storage_path = Column(String(512), nullable=False)
    uploaded_by = Column(String(64), nullable=True)
    verification_status = Column(String(16), nullable=False, default="pending", index=True)
    verified_by = Column(String(64), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
