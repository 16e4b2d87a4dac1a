# ruff: noqa: I001
"""Add ``start_date`` so refreshes never backfill before a template's first month.

Revision ID: 0003_rl_template_start_date
Revises: 0002_rl_template_end_date
Create Date: 2025-07-02
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0003_rl_template_start_date"
down_revision: str | None = "0002_rl_template_end_date"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Existing rows stay NULL (unbounded below).
    op.add_column(
        "rl_recurring_templates",
        sa.Column("start_date", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("rl_recurring_templates", "start_date")
