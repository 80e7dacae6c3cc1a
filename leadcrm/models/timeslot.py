from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Time,
)
from sqlalchemy.sql import func

from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class Timeslot(Base):
    """Bookable calendar interval with an occupancy counter.

    ``date`` / ``start_time`` / ``end_time`` are business-clock (UTC+8)
    wall times.  ``occupied_count`` is only changed through
    :class:`~leadcrm.repositories.timeslot_repository.TimeslotRepository`.
    """

    __tablename__ = "timeslots"
    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_capacity = Column(Integer, nullable=False, default=1, server_default="1")
    occupied_count = Column(Integer, nullable=False, default=0, server_default="0")
    calendar_setting_id = Column(
        Integer, ForeignKey("calendar_settings.id", ondelete="SET NULL")
    )
    is_disabled = Column(Boolean, nullable=False, default=False, server_default="0")
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    __table_args__ = (
        CheckConstraint("occupied_count >= 0", name="occupied_nonneg"),
        CheckConstraint("max_capacity >= 0", name="max_capacity_nonneg"),
        CheckConstraint("start_time < end_time", name="start_before_end"),
        Index("idx_timeslots_date_start", "date", "start_time"),
    )
