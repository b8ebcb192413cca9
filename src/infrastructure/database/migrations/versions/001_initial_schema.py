# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema: school directory and internal messaging.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-15

Creates the directory tables read by messaging (users, students,
music_classes, class_students) and the messaging tables (messages,
message_deliveries, message_reads).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Create directory and messaging tables."""
    # ==========================================================================
    # 1. users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="teacher"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ==========================================================================
    # 2. students table
    # ==========================================================================
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("rut", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("instrument", sa.String(100), nullable=True),
        sa.Column("level", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_students_status", "students", ["status"])

    # ==========================================================================
    # 3. music_classes table
    # ==========================================================================
    op.create_table(
        "music_classes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("room", sa.String(100), nullable=True),
        sa.Column(
            "teacher_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("schedule", sa.JSON, nullable=False),
        *_timestamps(),
    )

    # ==========================================================================
    # 4. class_students table
    # ==========================================================================
    op.create_table(
        "class_students",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "class_id",
            sa.String(36),
            sa.ForeignKey("music_classes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            sa.String(36),
            sa.ForeignKey("students.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_class_students_class_id", "class_students", ["class_id"])
    op.create_index("ix_class_students_student_id", "class_students", ["student_id"])

    # ==========================================================================
    # 5. messages table
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "sender_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("recipient_kind", sa.String(32), nullable=False, server_default="all_students"),
        sa.Column("recipient_ref", sa.String(36), nullable=True),
        sa.Column("recipient_filters", sa.JSON, nullable=True),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("message_type", sa.String(20), nullable=False, server_default="notification"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("deliver_internal", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("deliver_email", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("deliver_whatsapp", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("template", sa.String(100), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("updated_by", sa.String(36), nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('draft', 'sent')", name="ck_messages_status"),
        sa.CheckConstraint(
            "recipient_kind IN ('specific_student', 'all_students', 'specific_class')",
            name="ck_messages_recipient_kind",
        ),
    )
    op.create_index("ix_messages_sender_created", "messages", ["sender_id", "created_at"])
    op.create_index("ix_messages_recipient_created", "messages", ["recipient_ref", "created_at"])
    op.create_index("ix_messages_status_scheduled", "messages", ["status", "scheduled_for"])
    op.create_index("ix_messages_type_priority", "messages", ["message_type", "priority"])

    # ==========================================================================
    # 6. message_deliveries table
    # ==========================================================================
    op.create_table(
        "message_deliveries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "message_id",
            sa.String(36),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recipient_id", sa.String(36), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column(
            "delivered_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "message_id",
            "recipient_id",
            "channel",
            name="uq_message_deliveries_recipient_channel",
        ),
        sa.CheckConstraint(
            "channel IN ('internal', 'email', 'whatsapp')",
            name="ck_message_deliveries_channel",
        ),
    )
    op.create_index(
        "ix_message_deliveries_recipient_id", "message_deliveries", ["recipient_id"]
    )

    # ==========================================================================
    # 7. message_reads table
    # ==========================================================================
    op.create_table(
        "message_reads",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "message_id",
            sa.String(36),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recipient_id", sa.String(36), nullable=False),
        sa.Column(
            "read_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("message_id", "recipient_id", name="uq_message_reads_recipient"),
    )
    op.create_index("ix_message_reads_recipient_id", "message_reads", ["recipient_id"])


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_table("message_reads")
    op.drop_table("message_deliveries")
    op.drop_table("messages")
    op.drop_table("class_students")
    op.drop_table("music_classes")
    op.drop_table("students")
    op.drop_table("users")
