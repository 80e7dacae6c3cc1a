from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.sql import func

from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


def _default_working_days():
    return [1, 2, 3, 4, 5]


class CalendarSetting(Base):
    """Template from which bookable timeslots are generated.

    ``working_days`` holds ISO weekday numbers (1 = Monday ... 7 = Sunday).
    """

    __tablename__ = "calendar_settings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    working_days = Column(JSON, nullable=False, default=_default_working_days)
    daily_start_time = Column(Time, nullable=False)
    daily_end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=30, server_default="30")
    default_max_capacity = Column(Integer, nullable=False, default=1, server_default="1")
    timezone = Column(String(50), nullable=False, default="Asia/Singapore", server_default="Asia/Singapore")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        CheckConstraint("slot_duration_minutes > 0", name="slot_duration_positive"),
        CheckConstraint("default_max_capacity >= 0", name="default_capacity_nonneg"),
    )


class CalendarException(Base):
    """A date on which no slots are generated (public holiday, closure)."""

    __tablename__ = "calendar_exceptions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    calendar_setting_id = Column(
        Integer, ForeignKey("calendar_settings.id", ondelete="CASCADE")
    )
    date = Column(Date, nullable=False, index=True)
    is_closed = Column(Boolean, nullable=False, default=True, server_default="1")
    reason = Column(Text)
