# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-09-01

Creates schools, classes, students, users, calendar events, permission
slips, report cards, conversations and messages. Membership sets are
JSONB lists with GIN indexes for containment filters. Uniqueness of join
codes, slips per (event, guardian) and report cards per (student, term)
is enforced by the database.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _version() -> sa.Column:
    return sa.Column("version", sa.Integer, nullable=False, server_default="1")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Create all tables."""
    # ==========================================================================
    # 1. Schools, classes and students
    # ==========================================================================
    op.create_table(
        "schools",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "classes",
        _id(),
        _version(),
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("term", sa.String(50), nullable=False),
        sa.Column("code", sa.String(8), unique=True, nullable=True),
        sa.Column("teacher_ids", postgresql.JSONB, nullable=False),
        sa.Column("student_ids", postgresql.JSONB, nullable=False),
        sa.Column("guardian_ids", postgresql.JSONB, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_classes_school_term", "classes", ["school_id", "term"])
    for column in ("teacher_ids", "student_ids", "guardian_ids"):
        op.create_index(
            f"ix_classes_{column}",
            "classes",
            [column],
            postgresql_using="gin",
        )

    op.create_table(
        "students",
        _id(),
        _version(),
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("grade", sa.String(20), nullable=False),
        sa.Column("guardian_ids", postgresql.JSONB, nullable=False),
        sa.Column("class_ids", postgresql.JSONB, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_students_school_id", "students", ["school_id"])
    for column in ("guardian_ids", "class_ids"):
        op.create_index(
            f"ix_students_{column}",
            "students",
            [column],
            postgresql_using="gin",
        )

    # ==========================================================================
    # 2. Users
    # ==========================================================================
    op.create_table(
        "users",
        _id(),
        _version(),
        sa.Column("subject_id", sa.String(255), unique=True, nullable=False),
        sa.Column("role", sa.String(20), nullable=True),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("school_id", sa.String(36), nullable=True),
        sa.Column("role_selected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("name_set_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_school_id", "users", ["school_id"])

    # ==========================================================================
    # 3. Events, permission slips and report cards
    # ==========================================================================
    op.create_table(
        "calendar_events",
        _id(),
        _version(),
        sa.Column("school_id", sa.String(36), nullable=False),
        sa.Column("class_id", sa.String(36), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column(
            "requires_permission_slip",
            sa.Boolean,
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("permission_form", sa.LargeBinary, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_calendar_events_school_id", "calendar_events", ["school_id"])
    op.create_index("ix_calendar_events_class_id", "calendar_events", ["class_id"])

    op.create_table(
        "permission_slips",
        _id(),
        _version(),
        sa.Column("event_id", sa.String(36), nullable=False),
        sa.Column("class_id", sa.String(36), nullable=False),
        sa.Column("guardian_id", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="unsent"),
        sa.Column("signed_payload", sa.LargeBinary, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "event_id",
            "guardian_id",
            name="uq_permission_slips_event_guardian",
        ),
        sa.CheckConstraint(
            "status IN ('unsent', 'sent', 'signed')",
            name="valid_permission_slip_status",
        ),
    )
    op.create_index("ix_permission_slips_event_id", "permission_slips", ["event_id"])
    op.create_index(
        "ix_permission_slips_guardian_status",
        "permission_slips",
        ["guardian_id", "status"],
    )

    op.create_table(
        "report_cards",
        _id(),
        _version(),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("teacher_id", sa.String(255), nullable=False),
        sa.Column("term", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("payload", sa.LargeBinary, nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "term", name="uq_report_cards_student_term"),
        sa.CheckConstraint(
            "status IN ('draft', 'published')",
            name="valid_report_card_status",
        ),
    )

    # ==========================================================================
    # 4. Conversations and messages
    # ==========================================================================
    op.create_table(
        "conversations",
        _id(),
        _version(),
        sa.Column("school_id", sa.String(36), nullable=True),
        sa.Column("teacher_id", sa.String(255), nullable=False),
        sa.Column("participant_ids", postgresql.JSONB, nullable=False),
        sa.Column("student_id", sa.String(36), nullable=True),
        sa.Column(
            "last_message_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        *_timestamps(),
    )
    op.create_index("ix_conversations_student_id", "conversations", ["student_id"])
    op.create_index(
        "ix_conversations_participant_ids",
        "conversations",
        ["participant_ids"],
        postgresql_using="gin",
    )

    op.create_table(
        "messages",
        _id(),
        sa.Column("conversation_id", sa.String(36), nullable=False),
        sa.Column("sender_id", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_messages_conversation_created",
        "messages",
        ["conversation_id", "created_at"],
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("report_cards")
    op.drop_table("permission_slips")
    op.drop_table("calendar_events")
    op.drop_table("users")
    op.drop_table("students")
    op.drop_table("classes")
    op.drop_table("schools")
