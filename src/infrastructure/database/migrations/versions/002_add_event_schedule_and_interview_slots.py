# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Add event schedule fields and interview slots.

Calendar events gain an optional description, a start/end time and the
date slips are due back. Interview slots are time slots on a class that a
guardian claims for one of their children, or that the teacher books on a
guardian's behalf.

Revision ID: 002_event_schedule_interviews
Revises: 001_initial
Create Date: 2025-10-06
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_event_schedule_interviews"
down_revision: str = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add event schedule columns and the interview_slots table."""
    op.add_column("calendar_events", sa.Column("description", sa.Text, nullable=True))
    op.add_column(
        "calendar_events",
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "calendar_events",
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column("calendar_events", sa.Column("due_date", sa.Date, nullable=True))

    op.create_table(
        "interview_slots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("class_id", sa.String(36), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("student_id", sa.String(36), nullable=True),
        sa.Column("guardian_id", sa.String(255), nullable=True),
        sa.Column("manual_guardian_name", sa.String(100), nullable=True),
        sa.Column("manual_guardian_email", sa.String(255), nullable=True),
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
        sa.CheckConstraint("end_at > start_at", name="interview_slot_ends_after_start"),
    )
    op.create_index(
        "ix_interview_slots_class_start",
        "interview_slots",
        ["class_id", "start_at"],
    )
    op.create_index(
        "ix_interview_slots_class_student",
        "interview_slots",
        ["class_id", "student_id"],
    )


def downgrade() -> None:
    """Drop interview slots and the event schedule columns."""
    op.drop_table("interview_slots")
    op.drop_column("calendar_events", "due_date")
    op.drop_column("calendar_events", "end_at")
    op.drop_column("calendar_events", "start_at")
    op.drop_column("calendar_events", "description")
