from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class CheckedInAgent(Base):
    """An agent's availability for auto-assignment on one business day.

    ``current_lead_count`` only ever grows through the conditional
    increment in ``CheckedInAgentRepository.try_increment``, which keeps
    it at or below ``lead_capacity``.
    """

    __tablename__ = "checked_in_agents"
    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    checked_in_date = Column(Date, nullable=False)
    lead_capacity = Column(Integer, nullable=False, default=10, server_default="10")
    weight = Column(Integer, nullable=False, default=1, server_default="1")
    current_lead_count = Column(Integer, nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    last_assigned_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("agent_id", "checked_in_date"),
        CheckConstraint("current_lead_count >= 0", name="lead_count_nonneg"),
        CheckConstraint("lead_capacity >= 0", name="lead_capacity_nonneg"),
        CheckConstraint("weight >= 1", name="weight_positive"),
    )


class AutoAssignmentSettings(Base):
    """Process-wide singleton holding the rotation pointer and switches."""

    __tablename__ = "auto_assignment_settings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    is_enabled = Column(Boolean, nullable=False, default=False, server_default="0")
    assignment_method = Column(
        String(20), nullable=False, default="round_robin", server_default="round_robin"
    )
    current_round_robin_index = Column(Integer, nullable=False, default=0, server_default="0")
    last_assigned_agent_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"))
    max_leads_per_agent_per_day = Column(
        Integer, nullable=False, default=20, server_default="20"
    )
    updated_by = Column(String(64))
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "assignment_method IN ('round_robin', 'weighted')", name="assignment_method"
        ),
        CheckConstraint("current_round_robin_index >= 0", name="rr_index_nonneg"),
    )


class LeadAssignmentHistory(Base):
    """Append-only record of every assignment decision."""

    __tablename__ = "lead_assignment_history"
    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to = Column(String(64), ForeignKey("users.id"), nullable=False)
    assigned_by = Column(String(64))
    assignment_method = Column(String(30), nullable=False)
    assignment_reason = Column(Text)
    assigned_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
