# ruff: noqa: I001
"""Add ``end_date`` to recurring templates for scheduled retirement.

Revision ID: 0002_rl_template_end_date
Revises: 0001_rl_core
Create Date: 2025-06-28
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_rl_template_end_date"
down_revision: str | None = "0001_rl_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Inclusive upper bound on materialization; NULL keeps the template open-ended.
    op.add_column(
        "rl_recurring_templates",
        sa.Column("end_date", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_rl_tpl_end_date", "rl_recurring_templates", ["end_date"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_rl_tpl_end_date", table_name="rl_recurring_templates")
    op.drop_column("rl_recurring_templates", "end_date")
