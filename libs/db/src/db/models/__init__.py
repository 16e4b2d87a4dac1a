"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the recurring-transaction models used by ``recurring_ledger``.
"""

from .recurring import Base, RlRecurringTemplate, RlTransaction

__all__ = [
    "Base",
    "RlRecurringTemplate",
    "RlTransaction",
]
