"""Initial enrollment engine schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


program_type_enum = sa.Enum("recurring", "one_off_workshop", "trial", name="program_type_enum", native_enum=False)
enrollment_status_enum = sa.Enum(
    "active",
    "cancelled",
    "waitlisted",
    "accepted",
    name="enrollment_status_enum",
    native_enum=False,
)
window_unit_enum = sa.Enum("hours", "days", name="window_unit_enum", native_enum=False)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _program_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["program_id"], ["programs.id"], name=f"fk_{table}_program_id_programs", ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "programs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("studio_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("program_type", program_type_enum, nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("waitlist_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("manual_full_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="Europe/Amsterdam"),
    )
    op.create_index("ix_programs_studio_id", "programs", ["studio_id"], unique=False)
    op.create_index("ix_programs_program_type", "programs", ["program_type"], unique=False)

    op.create_table(
        "program_recurrence_rules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("weekday", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("season_start", sa.Date(), nullable=True),
        sa.Column("season_end", sa.Date(), nullable=True),
        _program_fk("program_recurrence_rules"),
        sa.CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_program_recurrence_rules_weekday_range"),
        sa.UniqueConstraint("program_id", name="uq_program_recurrence_rules_program_id"),
    )

    op.create_table(
        "program_occurrences",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        _program_fk("program_occurrences"),
        sa.UniqueConstraint("program_id", "date", "start_time", name="uq_program_occurrences_slot"),
    )
    op.create_index("ix_program_occurrences_program_id", "program_occurrences", ["program_id"], unique=False)

    op.create_table(
        "program_occurrence_overrides",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        _program_fk("program_occurrence_overrides"),
        sa.UniqueConstraint("program_id", "date", name="uq_program_occurrence_overrides_date"),
    )
    op.create_index(
        "ix_program_occurrence_overrides_program_id",
        "program_occurrence_overrides",
        ["program_id"],
        unique=False,
    )

    op.create_table(
        "enrollments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("holder_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("holder_sub_profile_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("holder_key", sa.String(length=64), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claim_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claim_expirations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], name="fk_enrollments_program_id_programs", ondelete="RESTRICT"),
    )
    op.create_index("ix_enrollments_program_id", "enrollments", ["program_id"], unique=False)
    op.create_index("ix_enrollments_holder_user_id", "enrollments", ["holder_user_id"], unique=False)
    op.create_index("ix_enrollments_status", "enrollments", ["status"], unique=False)
    op.create_index("ix_enrollments_claim_expires_at", "enrollments", ["claim_expires_at"], unique=False)
    op.create_index(
        "ix_enrollments_program_status_created",
        "enrollments",
        ["program_id", "status", "created_at"],
        unique=False,
    )
    op.create_index(
        "uq_enrollments_program_holder_open",
        "enrollments",
        ["program_id", "holder_key"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "cancellation_policies",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("studio_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("cancellation_policy", sa.Text(), nullable=True),
        sa.Column("refund_policy", sa.Text(), nullable=True),
        sa.Column("recurring_window_value", sa.Integer(), nullable=True),
        sa.Column("recurring_window_unit", window_unit_enum, nullable=True),
        sa.Column("workshop_window_value", sa.Integer(), nullable=True),
        sa.Column("workshop_window_unit", window_unit_enum, nullable=True),
        sa.Column("trial_window_value", sa.Integer(), nullable=True),
        sa.Column("trial_window_unit", window_unit_enum, nullable=True),
        sa.Column("cancellation_period_days", sa.Integer(), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_phone", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("studio_id", "version", name="uq_cancellation_policies_studio_version"),
    )
    op.create_index("ix_cancellation_policies_studio_id", "cancellation_policies", ["studio_id"], unique=False)

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("enrollment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_enrollment_id", "notifications", ["enrollment_id"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_enrollment_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_cancellation_policies_studio_id", table_name="cancellation_policies")
    op.drop_table("cancellation_policies")

    op.drop_index("uq_enrollments_program_holder_open", table_name="enrollments")
    op.drop_index("ix_enrollments_program_status_created", table_name="enrollments")
    op.drop_index("ix_enrollments_claim_expires_at", table_name="enrollments")
    op.drop_index("ix_enrollments_status", table_name="enrollments")
    op.drop_index("ix_enrollments_holder_user_id", table_name="enrollments")
    op.drop_index("ix_enrollments_program_id", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("ix_program_occurrence_overrides_program_id", table_name="program_occurrence_overrides")
    op.drop_table("program_occurrence_overrides")

    op.drop_index("ix_program_occurrences_program_id", table_name="program_occurrences")
    op.drop_table("program_occurrences")

    op.drop_table("program_recurrence_rules")

    op.drop_index("ix_programs_program_type", table_name="programs")
    op.drop_index("ix_programs_studio_id", table_name="programs")
    op.drop_table("programs")
