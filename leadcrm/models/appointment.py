from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from leadcrm.core.constants import APPOINTMENT_STATUSES, check_clause
from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class Appointment(Base):
    """Lead-facing appointment joined to one or more timeslots."""

    __tablename__ = "appointments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False)
    agent_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), nullable=False, default="upcoming", server_default="upcoming")
    start_datetime = Column(DateTime(timezone=True), nullable=False)
    end_datetime = Column(DateTime(timezone=True), nullable=False)
    loan_status = Column(String(50))
    notes = Column(Text)
    created_by = Column(String(64))
    updated_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    timeslot_links = relationship(
        "AppointmentTimeslot",
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(check_clause("status", APPOINTMENT_STATUSES), name="status"),
        Index("idx_appointments_lead_status", "lead_id", "status"),
        Index("idx_appointments_status_start", "status", "start_datetime"),
    )


class AppointmentTimeslot(Base):
    """Junction between an appointment and a timeslot it occupies."""

    __tablename__ = "appointment_timeslots"
    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    timeslot_id = Column(Integer, ForeignKey("timeslots.id"), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False, server_default="0")

    appointment = relationship("Appointment", back_populates="timeslot_links")

    __table_args__ = (UniqueConstraint("appointment_id", "timeslot_id"),)


class BorrowerAppointment(Base):
    """Borrower-facing appointment; same lifecycle as :class:`Appointment`."""

    __tablename__ = "borrower_appointments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    borrower_id = Column(
        Integer, ForeignKey("borrowers.id", ondelete="CASCADE"), nullable=False
    )
    agent_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), nullable=False, default="upcoming", server_default="upcoming")
    start_datetime = Column(DateTime(timezone=True), nullable=False)
    end_datetime = Column(DateTime(timezone=True), nullable=False)
    loan_status = Column(String(50))
    notes = Column(Text)
    created_by = Column(String(64))
    updated_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())

    timeslot_links = relationship(
        "BorrowerAppointmentTimeslot",
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(check_clause("status", APPOINTMENT_STATUSES), name="status"),
        Index("idx_borrower_appointments_borrower_status", "borrower_id", "status"),
        Index("idx_borrower_appointments_status_start", "status", "start_datetime"),
    )


class BorrowerAppointmentTimeslot(Base):
    __tablename__ = "borrower_appointment_timeslots"
    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(
        Integer,
        ForeignKey("borrower_appointments.id", ondelete="CASCADE"),
        nullable=False,
    )
    timeslot_id = Column(Integer, ForeignKey("timeslots.id"), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False, server_default="0")

    appointment = relationship("BorrowerAppointment", back_populates="timeslot_links")

    __table_args__ = (UniqueConstraint("appointment_id", "timeslot_id"),)
