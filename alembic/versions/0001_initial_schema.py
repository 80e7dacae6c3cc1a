"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PARTY_STATUSES = (
    "'assigned', 'blacklisted', 'booked', 'done', 'follow_up', 'give_up', "
    "'missed/RS', 'new', 'no_answer', 'unqualified'"
)
APPOINTMENT_STATUSES = "'cancelled', 'done', 'missed', 'scheduled', 'upcoming'"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _party_columns():
    return [
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone_number", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("source", sa.String(100)),
    ]


def _party_tail():
    return [
        sa.Column("status", sa.String(30), nullable=False, server_default="new"),
        sa.Column(
            "assigned_to",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column("follow_up_date", sa.DateTime(timezone=True)),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(64)),
        sa.Column("updated_by", sa.String(64)),
        *_timestamps(),
    ]


def _appointment_columns(party_fk: str, party_table: str):
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            party_fk,
            sa.Integer(),
            sa.ForeignKey(f"{party_table}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("agent_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        sa.Column("start_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("loan_status", sa.String(50)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(64)),
        sa.Column("updated_by", sa.String(64)),
        *_timestamps(),
    ]


def _link_columns(appointment_table: str):
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "appointment_id",
            sa.Integer(),
            sa.ForeignKey(f"{appointment_table}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("timeslot_id", sa.Integer(), sa.ForeignKey("timeslots.id"), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("role", sa.String(30), nullable=False, server_default="agent"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_party_columns(),
        sa.Column("amount", sa.Numeric(12, 2)),
        *_party_tail(),
        sa.CheckConstraint(f"status IN ({PARTY_STATUSES})", name="ck_leads_status"),
    )
    op.create_index("idx_leads_status_assigned", "leads", ["status", "assigned_to"])
    op.create_index("idx_leads_created_at", "leads", ["created_at"])

    op.create_table(
        "borrowers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("lead_id", sa.Integer(), sa.ForeignKey("leads.id", ondelete="SET NULL")),
        *_party_columns(),
        sa.Column("loan_id", sa.String(64)),
        sa.Column("loan_status", sa.String(50)),
        sa.Column("aa_status", sa.String(50)),
        *_party_tail(),
        sa.CheckConstraint(f"status IN ({PARTY_STATUSES})", name="ck_borrowers_status"),
    )
    op.create_index(
        "idx_borrowers_status_assigned", "borrowers", ["status", "assigned_to"]
    )

    op.create_table(
        "calendar_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("daily_start_time", sa.Time(), nullable=False),
        sa.Column("daily_end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("default_max_capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("timezone", sa.String(50), nullable=False, server_default="Asia/Singapore"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "slot_duration_minutes > 0",
            name="ck_calendar_settings_slot_duration_positive",
        ),
        sa.CheckConstraint(
            "default_max_capacity >= 0",
            name="ck_calendar_settings_default_capacity_nonneg",
        ),
    )

    op.create_table(
        "calendar_exceptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "calendar_setting_id",
            sa.Integer(),
            sa.ForeignKey("calendar_settings.id", ondelete="CASCADE"),
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reason", sa.Text()),
    )
    op.create_index("ix_calendar_exceptions_date", "calendar_exceptions", ["date"])

    op.create_table(
        "timeslots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("occupied_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "calendar_setting_id",
            sa.Integer(),
            sa.ForeignKey("calendar_settings.id", ondelete="SET NULL"),
        ),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("occupied_count >= 0", name="ck_timeslots_occupied_nonneg"),
        sa.CheckConstraint("max_capacity >= 0", name="ck_timeslots_max_capacity_nonneg"),
        sa.CheckConstraint("start_time < end_time", name="ck_timeslots_start_before_end"),
    )
    op.create_index("idx_timeslots_date_start", "timeslots", ["date", "start_time"])

    op.create_table(
        "appointments",
        *_appointment_columns("lead_id", "leads"),
        sa.CheckConstraint(
            f"status IN ({APPOINTMENT_STATUSES})", name="ck_appointments_status"
        ),
    )
    op.create_index("idx_appointments_lead_status", "appointments", ["lead_id", "status"])
    op.create_index(
        "idx_appointments_status_start", "appointments", ["status", "start_datetime"]
    )

    op.create_table(
        "appointment_timeslots",
        *_link_columns("appointments"),
        sa.UniqueConstraint(
            "appointment_id",
            "timeslot_id",
            name="uq_appointment_timeslots_appointment_id",
        ),
    )

    op.create_table(
        "borrower_appointments",
        *_appointment_columns("borrower_id", "borrowers"),
        sa.CheckConstraint(
            f"status IN ({APPOINTMENT_STATUSES})", name="ck_borrower_appointments_status"
        ),
    )
    op.create_index(
        "idx_borrower_appointments_borrower_status",
        "borrower_appointments",
        ["borrower_id", "status"],
    )
    op.create_index(
        "idx_borrower_appointments_status_start",
        "borrower_appointments",
        ["status", "start_datetime"],
    )

    op.create_table(
        "borrower_appointment_timeslots",
        *_link_columns("borrower_appointments"),
        sa.UniqueConstraint(
            "appointment_id",
            "timeslot_id",
            name="uq_borrower_appointment_timeslots_appointment_id",
        ),
    )

    op.create_table(
        "checked_in_agents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "agent_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("checked_in_date", sa.Date(), nullable=False),
        sa.Column("lead_capacity", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("weight", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_lead_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_assigned_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint(
            "agent_id", "checked_in_date", name="uq_checked_in_agents_agent_id"
        ),
        sa.CheckConstraint(
            "current_lead_count >= 0", name="ck_checked_in_agents_lead_count_nonneg"
        ),
        sa.CheckConstraint(
            "lead_capacity >= 0", name="ck_checked_in_agents_lead_capacity_nonneg"
        ),
        sa.CheckConstraint("weight >= 1", name="ck_checked_in_agents_weight_positive"),
    )

    op.create_table(
        "auto_assignment_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "assignment_method", sa.String(20), nullable=False, server_default="round_robin"
        ),
        sa.Column(
            "current_round_robin_index", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "last_assigned_agent_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "max_leads_per_agent_per_day", sa.Integer(), nullable=False, server_default="20"
        ),
        sa.Column("updated_by", sa.String(64)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "assignment_method IN ('round_robin', 'weighted')",
            name="ck_auto_assignment_settings_assignment_method",
        ),
        sa.CheckConstraint(
            "current_round_robin_index >= 0",
            name="ck_auto_assignment_settings_rr_index_nonneg",
        ),
    )

    op.create_table(
        "lead_assignment_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "lead_id",
            sa.Integer(),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assigned_to", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_by", sa.String(64)),
        sa.Column("assignment_method", sa.String(30), nullable=False),
        sa.Column("assignment_reason", sa.Text()),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_lead_assignment_history_lead_id", "lead_assignment_history", ["lead_id"]
    )

    op.create_table(
        "logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("performed_by", sa.String(64)),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_logs_entity", "logs", ["entity_type", "entity_id"])

    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("party_type", sa.String(20), nullable=False),
        sa.Column("party_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_by", sa.String(64)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_notes_party", "notes", ["party_type", "party_id"])

    op.create_table(
        "playbooks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("dialer_playbook_id", sa.String(100), unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "agent_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String(64)),
        *_timestamps(),
    )

    op.create_table(
        "playbook_contacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "playbook_id",
            sa.Integer(),
            sa.ForeignKey("playbooks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lead_id",
            sa.Integer(),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("dialer_contact_id", sa.String(100)),
        sa.Column("phone_number", sa.String(30), nullable=False),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("data_source", sa.String(100)),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("api_response", sa.JSON()),
        sa.Column("error_message", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint(
            "playbook_id", "lead_id", name="uq_playbook_contacts_playbook_id"
        ),
        sa.CheckConstraint(
            "status IN ('created', 'failed', 'pending', 'removed')",
            name="ck_playbook_contacts_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("playbook_contacts")
    op.drop_table("playbooks")
    op.drop_index("idx_notes_party", table_name="notes")
    op.drop_table("notes")
    op.drop_index("idx_logs_entity", table_name="logs")
    op.drop_table("logs")
    op.drop_index(
        "ix_lead_assignment_history_lead_id", table_name="lead_assignment_history"
    )
    op.drop_table("lead_assignment_history")
    op.drop_table("auto_assignment_settings")
    op.drop_table("checked_in_agents")
    op.drop_table("borrower_appointment_timeslots")
    op.drop_index(
        "idx_borrower_appointments_status_start", table_name="borrower_appointments"
    )
    op.drop_index(
        "idx_borrower_appointments_borrower_status", table_name="borrower_appointments"
    )
    op.drop_table("borrower_appointments")
    op.drop_table("appointment_timeslots")
    op.drop_index("idx_appointments_status_start", table_name="appointments")
    op.drop_index("idx_appointments_lead_status", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("idx_timeslots_date_start", table_name="timeslots")
    op.drop_table("timeslots")
    op.drop_index("ix_calendar_exceptions_date", table_name="calendar_exceptions")
    op.drop_table("calendar_exceptions")
    op.drop_table("calendar_settings")
    op.drop_index("idx_borrowers_status_assigned", table_name="borrowers")
    op.drop_table("borrowers")
    op.drop_index("idx_leads_created_at", table_name="leads")
    op.drop_index("idx_leads_status_assigned", table_name="leads")
    op.drop_table("leads")
    op.drop_table("users")
