from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class AuditLog(Base):
    """Generic audit trail row for any entity mutation."""

    __tablename__ = "logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(Text, nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False)
    performed_by = Column(String(64))
    timestamp = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (Index("idx_logs_entity", "entity_type", "entity_id"),)


class Note(Base):
    """Free-text note attached to a lead or a borrower."""

    __tablename__ = "notes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    party_type = Column(String(20), nullable=False)
    party_id = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (Index("idx_notes_party", "party_type", "party_id"),)
