# ruff: noqa: I001
"""Recurring templates and materialized transactions.

Revision ID: 0001_rl_core
Revises: None
Create Date: 2025-06-28
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_rl_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # rl_recurring_templates (end_date arrives in 0002)
    op.create_table(
        "rl_recurring_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("day_of_month", sa.Integer(), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("kind in ('income','expense')", name="ck_rl_tpl_kind"),
        sa.CheckConstraint(
            "day_of_month >= 1 AND day_of_month <= 31", name="ck_rl_tpl_day_of_month"
        ),
    )
    op.create_index("ix_rl_tpl_user_id", "rl_recurring_templates", ["user_id"], unique=False)
    op.create_index(
        "ix_rl_tpl_is_active", "rl_recurring_templates", ["is_active"], unique=False
    )

    # rl_transactions
    op.create_table(
        "rl_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column(
            "status",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("recurring_template_id", sa.Uuid(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        # Instances outlive their template; the reference is cleared instead.
        sa.ForeignKeyConstraint(
            ["recurring_template_id"],
            ["rl_recurring_templates.id"],
            name="fk_rl_tx_recurring_template",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("kind in ('income','expense')", name="ck_rl_tx_kind"),
        sa.CheckConstraint("status in ('pending','completed')", name="ck_rl_tx_status"),
    )

    op.create_index("ix_rl_tx_user_id", "rl_transactions", ["user_id"], unique=False)
    op.create_index("ix_rl_tx_status", "rl_transactions", ["status"], unique=False)
    # Serves both the per-month existence probe and the repair scan
    op.create_index(
        "ix_rl_tx_template_date",
        "rl_transactions",
        ["recurring_template_id", "date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_rl_tx_template_date", table_name="rl_transactions")
    op.drop_index("ix_rl_tx_status", table_name="rl_transactions")
    op.drop_index("ix_rl_tx_user_id", table_name="rl_transactions")
    op.drop_table("rl_transactions")
    op.drop_index("ix_rl_tpl_is_active", table_name="rl_recurring_templates")
    op.drop_index("ix_rl_tpl_user_id", table_name="rl_recurring_templates")
    op.drop_table("rl_recurring_templates")
