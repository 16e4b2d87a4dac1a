from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Templates: rl_recurring_templates
# ---------------------------


class RlRecurringTemplate(Base):
    __tablename__ = "rl_recurring_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owner is an opaque reference; the user directory lives outside this schema.
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    # Nominal request only. Resolved against each month at materialization time.
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    # Inclusive upper bound on materialization; NULL means unbounded.
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # First month to materialize; NULL means no lower bound.
    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("kind in ('income','expense')", name="ck_rl_tpl_kind"),
        CheckConstraint(
            "day_of_month >= 1 AND day_of_month <= 31", name="ck_rl_tpl_day_of_month"
        ),
        Index("ix_rl_tpl_user_id", "user_id"),
        Index("ix_rl_tpl_is_active", "is_active"),
        Index("ix_rl_tpl_end_date", "end_date"),
    )


# ---------------------------
# Instances: rl_transactions
# ---------------------------


class RlTransaction(Base):
    __tablename__ = "rl_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    # Descriptive fields are a snapshot of the template at generation time.
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    # Local calendar day anchored at noon.
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'pending'")
    )
    # NULL for manual entries and for instances orphaned by a template delete.
    recurring_template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("rl_recurring_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("kind in ('income','expense')", name="ck_rl_tx_kind"),
        CheckConstraint("status in ('pending','completed')", name="ck_rl_tx_status"),
        Index("ix_rl_tx_user_id", "user_id"),
        Index("ix_rl_tx_status", "status"),
        Index("ix_rl_tx_template_date", "recurring_template_id", "date"),
    )


__all__ = [
    "Base",
    "RlRecurringTemplate",
    "RlTransaction",
]
