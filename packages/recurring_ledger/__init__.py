"""Public interface for the ``recurring_ledger`` package.

Re-exports the session-scoped API functions, the engine's error taxonomy and
the public value types. There is no runtime logic here, only symbol
re-exports. Session-level building blocks live in ``reconcile``, ``repair``,
``generator``, ``calendar_math`` and ``store``.
"""

from .api import (
    TemplateView,
    create_recurring_template,
    delete_recurring_template,
    list_recurring_templates,
    refresh_recurring_templates,
    repair_all_active,
    repair_duplicates,
    update_recurring_template,
)
from .errors import NotFoundError, RecurringError, StoreError, ValidationError
from .models import (
    RefreshReport,
    RepairReport,
    RepairScope,
    TemplateDraft,
    TemplatePatch,
    TransactionInstance,
)
from .reconcile import Retirement

__all__ = [
    # API
    "create_recurring_template",
    "update_recurring_template",
    "delete_recurring_template",
    "refresh_recurring_templates",
    "repair_duplicates",
    "repair_all_active",
    "list_recurring_templates",
    # Errors
    "RecurringError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    # Models / types
    "TemplateDraft",
    "TemplatePatch",
    "TransactionInstance",
    "TemplateView",
    "Retirement",
    "RefreshReport",
    "RepairReport",
    "RepairScope",
]
