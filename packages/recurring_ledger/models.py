"""Domain values and validated inputs for ``recurring_ledger``.

Two families live here:

- Plain frozen dataclasses for values the engine produces
  (:class:`TransactionInstance`) or reports (:class:`RefreshReport`,
  :class:`RepairReport`), plus the :class:`RepairScope` selector.
- Pydantic models for caller-supplied input (:class:`TemplateDraft`,
  :class:`TemplatePatch`). Validation runs before any store call; failures are
  re-raised as :class:`~recurring_ledger.errors.ValidationError` by
  :func:`validate_draft` / :func:`validate_patch`.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

Kind = Literal["income", "expense"]
Status = Literal["pending", "completed"]

STATUS_PENDING = "pending"


class TemplateLike(Protocol):
    """Template fields the generator reads (ORM rows satisfy this)."""

    id: uuid.UUID
    user_id: uuid.UUID
    description: str
    amount: Decimal
    kind: str
    category: str
    day_of_month: int
    start_date: datetime | None
    end_date: datetime | None


# ---------------------------------------------------------------------------
# Materialized values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionInstance:
    """One monthly materialization of a template, not yet persisted.

    Descriptive fields are a value copy taken at generation time; later edits
    to the template never flow into an instance that already exists.
    """

    user_id: uuid.UUID
    description: str
    amount: Decimal
    kind: str
    category: str
    date: datetime
    recurring_template_id: uuid.UUID | None
    status: str = STATUS_PENDING

    @classmethod
    def from_template(cls, template: TemplateLike, when: datetime) -> TransactionInstance:
        return cls(
            user_id=template.user_id,
            description=template.description,
            amount=template.amount,
            kind=template.kind,
            category=template.category,
            date=when,
            recurring_template_id=template.id,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "description": self.description,
            "amount": self.amount,
            "kind": self.kind,
            "category": self.category,
            "date": self.date,
            "status": self.status,
            "recurring_template_id": self.recurring_template_id,
        }


@dataclass(frozen=True, slots=True)
class RepairScope:
    """Selects the instances a repair pass scans: one user or one template."""

    user_id: uuid.UUID | None = None
    template_id: uuid.UUID | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.template_id is None):
            raise ValidationError("RepairScope requires exactly one of user_id/template_id")


@dataclass(slots=True)
class RefreshReport:
    templates_processed: int = 0
    instances_created: int = 0
    # (template_id, error message) for templates skipped by the bulkhead
    failures: list[tuple[uuid.UUID, str]] = field(default_factory=list)


@dataclass(slots=True)
class RepairReport:
    groups_examined: int = 0
    duplicate_groups: int = 0
    removed: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    def merge(self, other: RepairReport) -> None:
        self.groups_examined += other.groups_examined
        self.duplicate_groups += other.duplicate_groups
        self.removed += other.removed
        self.failures.extend(other.failures)


# ---------------------------------------------------------------------------
# Validated input
# ---------------------------------------------------------------------------


def _collapse_ws(v: str) -> str:
    s = " ".join(v.split())
    if not s:
        raise ValueError("must be non-empty")
    return s


# numeric(10,2)
_AMOUNT_LIMIT = Decimal("100000000")


def _coerce_amount(v: Any) -> Any:
    """Round numeric input to cents; leave anything else for pydantic to reject."""

    if isinstance(v, bool) or not isinstance(v, (int, float, str, Decimal)):
        return v
    try:
        d = Decimal(str(v).strip())
    except ArithmeticError:
        return v
    if not d.is_finite():
        raise ValueError("amount must be a finite number")
    d = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if abs(d) >= _AMOUNT_LIMIT:
        raise ValueError("amount out of range")
    return d


class TemplateDraft(BaseModel):
    """A new recurring template as submitted by a caller."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_id: uuid.UUID
    description: str
    amount: Decimal
    kind: Kind
    category: str
    day_of_month: int = Field(ge=1, le=31)
    end_date: datetime | None = None

    @field_validator("description", "category")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        return _collapse_ws(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _round_amount(cls, v: Any) -> Any:
        return _coerce_amount(v)


# Fields a patch may carry that must never be written as NULL
_NON_NULLABLE_PATCH_FIELDS = ("description", "amount", "kind", "category", "day_of_month")


class TemplatePatch(BaseModel):
    """Field-level changes to an existing template.

    Only fields explicitly present are applied (``exclude_unset``); an explicit
    ``end_date=None`` clears a scheduled cutoff. Activation is not patchable:
    retirement goes through the delete flow so pending instances are cleaned up.
    """

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    amount: Decimal | None = None
    kind: Kind | None = None
    category: str | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    end_date: datetime | None = None

    @field_validator("description", "category")
    @classmethod
    def _non_empty(cls, v: str | None) -> str | None:
        return None if v is None else _collapse_ws(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _round_amount(cls, v: Any) -> Any:
        return _coerce_amount(v)

    @model_validator(mode="after")
    def _no_null_required(self) -> TemplatePatch:
        for name in _NON_NULLABLE_PATCH_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _format_pydantic_error(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_draft(draft: TemplateDraft | Mapping[str, Any]) -> TemplateDraft:
    if isinstance(draft, TemplateDraft):
        return draft
    try:
        return TemplateDraft.model_validate(dict(draft))
    except PydanticValidationError as e:
        raise ValidationError(f"invalid template: {_format_pydantic_error(e)}") from e


def validate_patch(field_changes: TemplatePatch | Mapping[str, Any]) -> TemplatePatch:
    if isinstance(field_changes, TemplatePatch):
        return field_changes
    try:
        return TemplatePatch.model_validate(dict(field_changes))
    except PydanticValidationError as e:
        raise ValidationError(f"invalid template changes: {_format_pydantic_error(e)}") from e


__all__ = [
    "Kind",
    "Status",
    "STATUS_PENDING",
    "TemplateLike",
    "TransactionInstance",
    "RepairScope",
    "RefreshReport",
    "RepairReport",
    "TemplateDraft",
    "TemplatePatch",
    "validate_draft",
    "validate_patch",
]
