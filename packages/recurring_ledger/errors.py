"""Error taxonomy for the materialization engine.

- ``ValidationError``: malformed input, rejected before any store call.
- ``NotFoundError``: the referenced template is absent.
- ``StoreError``: the database operation failed; the SQLAlchemy error is
  chained as ``__cause__``.

All three derive from ``RecurringError`` so callers (the CLI, the refresh
bulkhead) can catch engine failures without catching programming errors.
"""

from __future__ import annotations


class RecurringError(Exception):
    """Base class for engine errors."""


class ValidationError(RecurringError, ValueError):
    pass


class NotFoundError(RecurringError, LookupError):
    pass


class StoreError(RecurringError, RuntimeError):
    pass


__all__ = [
    "RecurringError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
]
