"""Export, listing and statistics CLI commands."""

import json as json_lib
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from clinic_records.cli.utils import quiet_console, store_from_context, viewer_from_options, with_viewer_options
from clinic_records.logging_audit.audit import log_audit_event
from clinic_records.models.record import PatientStatus
from clinic_records.models.user import UserAccount
from clinic_records.services.export import export_database, export_spreadsheet, write_database_export
from clinic_records.services.listing import (
    ListingFilter,
    SortField,
    compute_dashboard_stats,
    list_records,
    paginate,
)
from clinic_records.utils.exceptions import StoreError

logger = logging.getLogger(__name__)


def _load_records(ctx: click.Context):
    try:
        return store_from_context(ctx).list_all()
    except StoreError as e:
        click.secho(f"Record store error: {e}", fg="red", err=True)
        logger.error(f"Record store error: {e}")
        sys.exit(1)


@click.group("export")
def export_group() -> None:
    """Export patient records."""
    pass


@export_group.command("json")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--users",
    "users_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON array of user accounts to include",
)
@with_viewer_options
@click.pass_context
def export_json(
    ctx: click.Context,
    output: Path,
    users_file: Optional[Path],
    role: Optional[str],
    can_view_financial: bool,
) -> None:
    """Write a full database export that can be re-imported.

    Example:

        clinic-records export json backup/patients-export.json
    """
    records = _load_records(ctx)
    users = []
    if users_file is not None:
        with open(users_file, encoding="utf-8") as f:
            users = [UserAccount.from_dict(u) for u in json_lib.load(f)]

    export = export_database(records, users=users, viewer=viewer_from_options(role, can_view_financial))
    write_database_export(export, output)
    log_audit_event(
        "EXPORT_WRITTEN",
        {"status": "success", "record_count": len(records), "format": "json", "output": output},
    )
    click.secho(f"✓ Exported {len(records)} record(s) to {output}", fg="green")


@export_group.command("csv")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@with_viewer_options
@click.pass_context
def export_csv(ctx: click.Context, output: Path, role: Optional[str], can_view_financial: bool) -> None:
    """Write records to a spreadsheet (.csv or .xlsx).

    Example:

        clinic-records export csv patients.xlsx --role doctor
    """
    records = _load_records(ctx)
    try:
        count = export_spreadsheet(records, output, viewer=viewer_from_options(role, can_view_financial))
    except ValueError as e:
        click.secho(str(e), fg="red", err=True)
        sys.exit(1)
    log_audit_event(
        "EXPORT_WRITTEN",
        {"status": "success", "record_count": count, "format": output.suffix.lstrip("."), "output": output},
    )
    click.secho(f"✓ Exported {count} record(s) to {output}", fg="green")


@click.command("list")
@click.option("--search", default="", help="Match name, code or diagnosis")
@click.option("--diagnosis", default=None, help="Exact primary diagnosis")
@click.option("--status", type=click.Choice([s.value for s in PatientStatus]), default=None)
@click.option("--year", default=None, help="Visit year, e.g. 2024")
@click.option("--month", type=click.IntRange(1, 12), default=None, help="Visit month 1-12")
@click.option("--sort", "sort_by", type=click.Choice([f.value for f in SortField]), default=SortField.NAME.value)
@click.option("--desc", "descending", is_flag=True, help="Sort descending")
@click.option("--page", type=click.IntRange(min=1), default=1)
@click.option("--page-size", type=click.IntRange(min=1), default=20)
@click.pass_context
def list_command(
    ctx: click.Context,
    search: str,
    diagnosis: Optional[str],
    status: Optional[str],
    year: Optional[str],
    month: Optional[int],
    sort_by: str,
    descending: bool,
    page: int,
    page_size: int,
) -> None:
    """List patient records."""
    criteria = ListingFilter(
        search=search,
        diagnosis=diagnosis,
        status=status,
        year=year,
        month=str(month) if month else None,
        sort_by=sort_by,
        descending=descending,
    )
    matched = list_records(_load_records(ctx), criteria)
    for record in paginate(matched, page=page, page_size=page_size):
        click.echo(
            f"{record.code:<14} {record.full_name_arabic:<30} {record.status.value:<10} "
            f"{record.visited_date:<10} {record.diagnosis}"
        )
    click.echo(f"\n{len(matched)} matching record(s)")


@click.command("stats")
@click.option("--json", "json_output", is_flag=True, help="Output statistics as JSON")
@with_viewer_options
@click.pass_context
def stats_command(ctx: click.Context, json_output: bool, role: Optional[str], can_view_financial: bool) -> None:
    """Show dashboard statistics."""
    with quiet_console(json_output):
        records = _load_records(ctx)
    stats = compute_dashboard_stats(records, viewer=viewer_from_options(role, can_view_financial))

    if json_output:
        click.echo(json_lib.dumps(stats.to_dict(), indent=2, ensure_ascii=False))
        return

    click.echo(f"Total patients: {stats.total_patients}")
    click.echo(f"Average age:    {stats.average_age}")
    click.echo(f"Surgeries:      {stats.total_surgeries}")
    if stats.total_surgery_cost is not None:
        click.echo(f"Surgery cost:   {stats.total_surgery_cost:.2f}")
    click.echo("\nBy status:")
    for status, count in stats.by_status.items():
        click.echo(f"  {status:<12} {count}")
    click.echo("\nBy diagnosis:")
    for diagnosis, count in stats.by_diagnosis.items():
        click.echo(f"  {diagnosis:<30} {count}")
    click.echo("\nVisits per month:")
    for month, count in stats.monthly_visits.items():
        click.echo(f"  {month}  {count}")
