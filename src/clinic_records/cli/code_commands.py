"""Patient code CLI commands."""

import logging
import sys
from datetime import datetime
from typing import Optional

import click

from clinic_records.cli.utils import store_from_context
from clinic_records.codes.allocator import allocate_code, parse_code, validate_code
from clinic_records.utils.exceptions import DuplicateCodeError, StoreError

logger = logging.getLogger(__name__)


@click.group("code")
def code_group() -> None:
    """Patient code allocation and checks."""
    pass


@code_group.command("next")
@click.option(
    "--as-of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Allocate for the month of this date (default: today)",
)
@click.pass_context
def next_code(ctx: click.Context, as_of: Optional[datetime]) -> None:
    """Print the next free patient code for the month.

    Nothing is reserved: the code is only guaranteed free until another
    record is saved.
    """
    try:
        records = store_from_context(ctx).list_all()
    except StoreError as e:
        click.secho(f"Record store error: {e}", fg="red", err=True)
        sys.exit(1)
    click.echo(allocate_code(records, as_of=as_of))


@code_group.command("check")
@click.argument("code")
@click.option("--record-id", default=None, help="Id of the record being edited, whose own code is allowed")
@click.pass_context
def check_code(ctx: click.Context, code: str, record_id: Optional[str]) -> None:
    """Check that CODE is well-formed and not used by another record.

    Exits with code 1 if the code is already in use.
    """
    if parse_code(code) is None:
        click.secho(f"⚠ {code} is not in YYYY/MM/SSSS format", fg="yellow")

    try:
        validate_code(code, store_from_context(ctx).list_all(), record_id=record_id)
    except DuplicateCodeError as e:
        click.secho(f"✗ {e}", fg="red")
        sys.exit(1)
    except StoreError as e:
        click.secho(f"Record store error: {e}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"✓ {code} is available", fg="green")
