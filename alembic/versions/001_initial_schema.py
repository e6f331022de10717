"""Initial schema - users, break types, break sessions

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # Break types
    op.create_table(
        "break_types",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_break_types"),
        sa.UniqueConstraint("name", name="uq_break_types_name"),
        sa.CheckConstraint("duration > 0", name="ck_break_types_duration_positive"),
    )

    # Break sessions
    op.create_table(
        "break_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("break_type_id", sa.Uuid(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ONGOING"),
        sa.Column("violation_duration", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_break_sessions"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_break_sessions_user_id_users", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["break_type_id"], ["break_types.id"], name="fk_break_sessions_break_type_id_break_types"),
        sa.CheckConstraint("violation_duration IS NULL OR violation_duration >= 0", name="ck_break_sessions_violation_non_negative"),
    )
    op.create_index("ix_break_sessions_user_id", "break_sessions", ["user_id"])
    op.create_index("ix_break_sessions_break_type_id", "break_sessions", ["break_type_id"])
    op.create_index("ix_break_sessions_start_time", "break_sessions", ["start_time"])
    # One ongoing break per agent
    op.create_index(
        "uq_break_sessions_one_ongoing",
        "break_sessions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ONGOING'"),
        sqlite_where=sa.text("status = 'ONGOING'"),
    )


def downgrade() -> None:
    op.drop_table("break_sessions")
    op.drop_table("break_types")
    op.drop_table("users")
