# ruff: noqa: I001
"""CLI for the ``recurring_ledger`` package.

Exposes callable command handlers (``cmd_*``, returning a process exit code)
and a Typer-based console interface. The root callback loads a local ``.env``
via ``python-dotenv`` (without overriding the environment) and configures
logging before any subcommand runs. Business logic lives in
``recurring_ledger.api``.

``refresh`` is the entry point for an external scheduler (cron, systemd
timer, ...); run it on any cadence, it is idempotent.
"""

from __future__ import annotations

import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv

from .errors import RecurringError
from .generator import DEFAULT_HORIZON_YEARS
from .logging_setup import configure_logging
from .models import RefreshReport, RepairReport, RepairScope, TransactionInstance


# ---- Small module-level helpers -----------------------------------------------


def _resolve_horizon_years(explicit: int | None) -> int:
    """Resolve the generation horizon from the option or ``RL_HORIZON_YEARS``.

    Falls back to the default for unset, non-numeric or non-positive values.
    """

    if explicit is not None and explicit > 0:
        return explicit
    env_val = os.getenv("RL_HORIZON_YEARS")
    try:
        years = int(env_val) if env_val else None
    except ValueError:
        years = None
    if years is not None and years > 0:
        return years
    return DEFAULT_HORIZON_YEARS


def _print_instances(instances: list[TransactionInstance]) -> None:
    for inst in instances:
        print(f"{inst.date.date().isoformat()}\t{inst.kind}\t{inst.amount}\t{inst.description}")


def _print_refresh(report: RefreshReport) -> None:
    print(
        f"processed={report.templates_processed} created={report.instances_created} "
        f"failed={len(report.failures)}"
    )
    for template_id, message in report.failures:
        print(f"Error: template {template_id}: {message}", file=sys.stderr)


def _print_repair(report: RepairReport) -> None:
    print(
        f"groups={report.groups_examined} duplicate_groups={report.duplicate_groups} "
        f"removed={report.removed} failed={len(report.failures)}"
    )
    for label, message in report.failures:
        print(f"Error: group {label}: {message}", file=sys.stderr)


# ---- Command handlers -----------------------------------------------------------


def cmd_create(
    draft: dict[str, Any],
    *,
    start_month: datetime | None = None,
    recurring: bool = True,
    horizon_years: int | None = None,
    database_url: str | None = None,
) -> int:
    from .api import create_recurring_template

    try:
        view, instances = create_recurring_template(
            draft,
            start_month=start_month,
            recurring=recurring,
            horizon_years=_resolve_horizon_years(horizon_years),
            database_url=database_url,
        )
    except (RecurringError, RuntimeError) as e:
        print(f"Error: create failed: {e}", file=sys.stderr)
        return 1

    print(f"template\t{view.id}")
    _print_instances(instances)
    return 0


def cmd_update(
    template_id: uuid.UUID,
    changes: dict[str, Any],
    *,
    effective_date: datetime | None = None,
    horizon_years: int | None = None,
    database_url: str | None = None,
) -> int:
    from .api import update_recurring_template

    try:
        instances = update_recurring_template(
            template_id,
            changes,
            effective_date,
            horizon_years=_resolve_horizon_years(horizon_years),
            database_url=database_url,
        )
    except (RecurringError, RuntimeError) as e:
        print(f"Error: update failed: {e}", file=sys.stderr)
        return 1

    _print_instances(instances)
    return 0


def cmd_delete(
    template_id: uuid.UUID,
    *,
    effective_date: datetime | None = None,
    database_url: str | None = None,
) -> int:
    from .api import delete_recurring_template

    try:
        result = delete_recurring_template(
            template_id, effective_date, database_url=database_url
        )
    except (RecurringError, RuntimeError) as e:
        print(f"Error: delete failed: {e}", file=sys.stderr)
        return 1

    if result.deactivated:
        print(f"deactivated\t{template_id}\tremoved={result.removed}")
    else:
        assert result.end_date is not None
        print(
            f"scheduled\t{template_id}\tend_date={result.end_date.date().isoformat()}"
            f"\tremoved={result.removed}"
        )
    return 0


def cmd_refresh(*, horizon_years: int | None = None, database_url: str | None = None) -> int:
    from .api import refresh_recurring_templates

    try:
        report = refresh_recurring_templates(
            horizon_years=_resolve_horizon_years(horizon_years), database_url=database_url
        )
    except (RecurringError, RuntimeError) as e:
        print(f"Error: refresh failed: {e}", file=sys.stderr)
        return 1

    _print_refresh(report)
    # Partial failure is still a failure for the scheduler's exit status
    return 1 if report.failures else 0


def cmd_repair(
    *,
    user_id: uuid.UUID | None = None,
    template_id: uuid.UUID | None = None,
    all_active: bool = False,
    database_url: str | None = None,
) -> int:
    from .api import repair_all_active, repair_duplicates

    try:
        if all_active:
            if user_id is not None or template_id is not None:
                print("Error: --all-active excludes --user-id/--template-id", file=sys.stderr)
                return 1
            report = repair_all_active(database_url=database_url)
        else:
            scope = RepairScope(user_id=user_id, template_id=template_id)
            report = repair_duplicates(scope, database_url=database_url)
    except (RecurringError, RuntimeError) as e:
        print(f"Error: repair failed: {e}", file=sys.stderr)
        return 1

    _print_repair(report)
    return 1 if report.failures else 0


def cmd_list(
    user_id: uuid.UUID,
    *,
    include_inactive: bool = False,
    database_url: str | None = None,
) -> int:
    from .api import list_recurring_templates

    try:
        views = list_recurring_templates(
            user_id,
            include_inactive=include_inactive,
            with_counts=True,
            database_url=database_url,
        )
    except (RecurringError, RuntimeError) as e:
        print(f"Error: list failed: {e}", file=sys.stderr)
        return 1

    for v in views:
        end = v.end_date.date().isoformat() if v.end_date else "-"
        state = "active" if v.is_active else "inactive"
        print(
            f"{v.id}\t{v.description}\t{v.kind}\t{v.amount}\tday={v.day_of_month}"
            f"\t{state}\tend={end}\tinstances={v.instance_count}"
        )
    return 0


# ---- Typer application ------------------------------------------------------------

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Materialize and reconcile recurring transactions.",
)

# Module-level option objects keep calls out of parameter defaults (ruff B008).
DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")
HORIZON_OPTION = typer.Option(
    None, help=f"Generation horizon in years (env RL_HORIZON_YEARS, default {DEFAULT_HORIZON_YEARS})."
)
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


@app.command("create")
def create_cmd(
    user_id: Annotated[uuid.UUID, typer.Option(help="Owner id.")],
    description: Annotated[str, typer.Option(help="Template description, e.g. 'Rent'.")],
    amount: Annotated[str, typer.Option(help="Amount as a decimal number.")],
    category: Annotated[str, typer.Option(help="Category label.")],
    day: Annotated[int, typer.Option(help="Nominal day of month (1-31).")],
    kind: Annotated[str, typer.Option(help="income or expense.")] = "expense",
    start_month: Annotated[
        datetime | None,
        typer.Option(formats=["%Y-%m", "%Y-%m-%d"], help="First month (YYYY-MM); default: now."),
    ] = None,
    one_off: Annotated[bool, typer.Option(help="Materialize only the start month.")] = False,
    horizon_years: int | None = HORIZON_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    draft = {
        "user_id": user_id,
        "description": description,
        "amount": amount,
        "kind": kind,
        "category": category,
        "day_of_month": day,
    }
    raise typer.Exit(
        cmd_create(
            draft,
            start_month=start_month,
            recurring=not one_off,
            horizon_years=horizon_years,
            database_url=database_url,
        )
    )


@app.command("update")
def update_cmd(
    template_id: Annotated[uuid.UUID, typer.Argument(help="Template id.")],
    description: Annotated[str | None, typer.Option()] = None,
    amount: Annotated[str | None, typer.Option()] = None,
    kind: Annotated[str | None, typer.Option()] = None,
    category: Annotated[str | None, typer.Option()] = None,
    day: Annotated[int | None, typer.Option(help="New nominal day of month.")] = None,
    end_date: Annotated[datetime | None, typer.Option(formats=DATE_FORMATS)] = None,
    clear_end_date: Annotated[bool, typer.Option(help="Remove a scheduled cutoff.")] = False,
    effective_date: Annotated[
        datetime | None,
        typer.Option(formats=DATE_FORMATS, help="Apply from this date (default: now)."),
    ] = None,
    horizon_years: int | None = HORIZON_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    changes: dict[str, Any] = {}
    for name, value in (
        ("description", description),
        ("amount", amount),
        ("kind", kind),
        ("category", category),
        ("day_of_month", day),
        ("end_date", end_date),
    ):
        if value is not None:
            changes[name] = value
    if clear_end_date:
        if end_date is not None:
            typer.echo("Error: --end-date and --clear-end-date are exclusive", err=True)
            raise typer.Exit(1)
        changes["end_date"] = None
    raise typer.Exit(
        cmd_update(
            template_id,
            changes,
            effective_date=effective_date,
            horizon_years=horizon_years,
            database_url=database_url,
        )
    )


@app.command("delete")
def delete_cmd(
    template_id: Annotated[uuid.UUID, typer.Argument(help="Template id.")],
    effective_date: Annotated[
        datetime | None,
        typer.Option(formats=DATE_FORMATS, help="Retire from this date (default: now)."),
    ] = None,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_delete(template_id, effective_date=effective_date, database_url=database_url)
    )


@app.command("refresh")
def refresh_cmd(
    horizon_years: int | None = HORIZON_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Top up every active template over the rolling horizon."""

    raise typer.Exit(cmd_refresh(horizon_years=horizon_years, database_url=database_url))


@app.command("repair")
def repair_cmd(
    user_id: Annotated[uuid.UUID | None, typer.Option()] = None,
    template_id: Annotated[uuid.UUID | None, typer.Option()] = None,
    all_active: Annotated[bool, typer.Option(help="Repair every active template.")] = False,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete duplicate instances per (template, month)."""

    raise typer.Exit(
        cmd_repair(
            user_id=user_id,
            template_id=template_id,
            all_active=all_active,
            database_url=database_url,
        )
    )


@app.command("list")
def list_cmd(
    user_id: Annotated[uuid.UUID, typer.Option(help="Owner id.")],
    include_inactive: Annotated[bool, typer.Option("--all", help="Include retired templates.")] = False,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    raise typer.Exit(
        cmd_list(user_id, include_inactive=include_inactive, database_url=database_url)
    )


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option(help="Log level name or number (env RECURRING_LEDGER_LOG_LEVEL)."),
    ] = None,
) -> None:
    """Load ``.env`` from the CWD (existing env wins) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
