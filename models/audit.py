from sqlalchemy import JSON, Column, DateTime, String

from database import Base
from utils.clock import utcnow


class SystemLog(Base):
    """Append-only audit trail. Rows are inserted, never updated or deleted."""

    __tablename__ = "system_logs"

    id = Column(String(64), primary_key=True, index=True)
    actor_id = Column(String(64), nullable=True, index=True)
    actor_role = Column(String(32), nullable=True)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=True, index=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
