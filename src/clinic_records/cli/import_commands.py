"""Import-related CLI commands.

This module provides the ``import`` command (batch import from a spreadsheet
or JSON file) and the ``add`` command (single manual record).
"""

import json as json_lib
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from clinic_records.cli.utils import get_config, quiet_console, store_from_context
from clinic_records.importer.batch import BatchImporter, CodePolicy, ImportOptions
from clinic_records.importer.readers import read_records
from clinic_records.models.record import Gender, PatientStatus, RecordShape
from clinic_records.utils.exceptions import (
    ClinicRecordsError,
    DuplicateCodeError,
    ImportFormatError,
    MissingRequiredFieldError,
    StoreError,
)

logger = logging.getLogger(__name__)


@click.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--shape",
    type=click.Choice([s.value for s in RecordShape]),
    default=None,
    help="Shape to normalize rows as (default: from the file type and content)",
)
@click.option(
    "--code-policy",
    type=click.Choice([p.value for p in CodePolicy]),
    default=None,
    help="Code numbering policy (overrides config)",
)
@click.option(
    "--sweep/--no-sweep",
    default=None,
    help="Report duplicate codes in the store after importing (overrides config)",
)
@click.option(
    "--workers",
    type=click.IntRange(1, 32),
    default=None,
    help="Concurrent store calls (overrides config)",
)
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.pass_context
def import_command(
    ctx: click.Context,
    file: Path,
    shape: Optional[str],
    code_policy: Optional[str],
    sweep: Optional[bool],
    workers: Optional[int],
    json_output: bool,
) -> None:
    """Import patient records from a spreadsheet or JSON file.

    Spreadsheets (.csv, .xlsx, .xls) are matched to fields by their column
    headers in English or Arabic. JSON files may be a database export
    ({"patients": [...]}) or a bare array of records.

    Every row is imported independently: a failing row is reported and the
    rest still import. Exits with code 1 if any row failed.

    Examples:

        # Import a spreadsheet with the configured store
        clinic-records import patients.xlsx

        # Import an export, refusing codes already in the store
        clinic-records import backup.json --code-policy live_store

        # Machine-readable result
        clinic-records import patients.csv --json
    """
    config = get_config(ctx)
    options = ImportOptions.from_config(config.importer)
    if code_policy is not None:
        options.code_policy = CodePolicy(code_policy)
    if sweep is not None:
        options.uniqueness_sweep = sweep
    if workers is not None:
        options.max_workers = workers

    with quiet_console(json_output):
        try:
            rows, detected_shape = read_records(file)
            row_shape = RecordShape(shape) if shape else detected_shape
            logger.info(f"Importing {len(rows)} {row_shape.value} row(s) from {file}")

            store = store_from_context(ctx, max_connections=options.max_workers)
            result = BatchImporter(store, options).import_batch(rows, row_shape)
        except (ImportFormatError, FileNotFoundError) as e:
            click.secho(f"Import file error: {e}", fg="red", err=True)
            logger.error(f"Import file error: {e}")
            sys.exit(1)
        except StoreError as e:
            click.secho(f"Record store error: {e}", fg="red", err=True)
            logger.error(f"Record store error: {e}")
            sys.exit(1)

    if json_output:
        click.echo(json_lib.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        color = "green" if not result.errors else "yellow" if result.success_count else "red"
        click.secho(result.format_report(), fg=color)

    sys.exit(1 if result.errors else 0)


@click.command("add")
@click.option("--name", required=True, help="Patient name (Arabic)")
@click.option("--code", default=None, help="Patient code (default: next free code this month)")
@click.option("--age", type=float, default=None, help="Age in years")
@click.option("--dob", default=None, help="Date of birth (YYYY-MM-DD)")
@click.option("--gender", type=click.Choice([g.value for g in Gender]), default=Gender.MALE.value)
@click.option("--diagnosis", "diagnoses", multiple=True, help="Diagnosis (repeatable)")
@click.option("--status", type=click.Choice([s.value for s in PatientStatus]), default=PatientStatus.DIAGNOSED.value)
@click.option("--date", "visited_date", default=None, help="Visit date (YYYY-MM-DD, default: today)")
@click.option("--notes", default="", help="Free-text notes")
@click.pass_context
def add_command(
    ctx: click.Context,
    name: str,
    code: Optional[str],
    age: Optional[float],
    dob: Optional[str],
    gender: str,
    diagnoses: tuple,
    status: str,
    visited_date: Optional[str],
    notes: str,
) -> None:
    """Add one patient record.

    Example:

        clinic-records add --name "سارة أحمد" --age 34 --gender Female --diagnosis Fracture
    """
    raw = {
        "fullNameArabic": name,
        "code": code,
        "age": age,
        "dateOfBirth": dob,
        "gender": gender,
        "diagnoses": list(diagnoses),
        "status": status,
        "visitedDate": visited_date,
        "notes": notes,
    }
    try:
        record = BatchImporter(store_from_context(ctx)).create_record(raw)
    except (MissingRequiredFieldError, DuplicateCodeError) as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(1)
    except ClinicRecordsError as e:
        click.secho(f"Record store error: {e}", fg="red", err=True)
        logger.error(f"Failed to add record: {e}")
        sys.exit(1)

    click.secho(f"✓ Added {record.code} (id {record.id})", fg="green")
