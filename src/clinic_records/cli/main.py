"""Main CLI entry point for Clinic Records.

This module provides the main Click command group for the clinic-records CLI.
"""

from pathlib import Path
from typing import Optional

import click

from clinic_records import __version__
from clinic_records.cli.code_commands import code_group
from clinic_records.cli.export_commands import export_group, list_command, stats_command
from clinic_records.cli.import_commands import add_command, import_command
from clinic_records.config import load_config
from clinic_records.logging_audit import configure_logging
from clinic_records.utils.exceptions import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="clinic-records")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: ./config/config.json)",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to log file (overrides config file)",
)
@click.option(
    "--redact-pii",
    is_flag=True,
    help="Redact PII (patient names, phone numbers) from logs",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: bool,
    log_file: Optional[Path],
    redact_pii: bool,
) -> None:
    """Clinic Records - patient record import, codes and export.

    Common usage:

        # Import a spreadsheet or JSON export
        clinic-records import patients.xlsx

        # Next free patient code for this month
        clinic-records code next

        # Back up the database
        clinic-records export json backup.json

    Use --help with any command for more information.
    """
    ctx.ensure_object(dict)

    try:
        config_obj = load_config(config)
    except ConfigurationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        ctx.exit(1)
    ctx.obj["config"] = config_obj

    # Precedence: CLI flags > config file > defaults
    log_level = "DEBUG" if verbose else config_obj.logging.level
    log_file_path = log_file if log_file else config_obj.logging.log_file
    configure_logging(
        level=log_level,
        log_file=log_file_path,
        redact_pii=redact_pii or config_obj.logging.redact_pii,
    )


cli.add_command(import_command)
cli.add_command(add_command)
cli.add_command(code_group)
cli.add_command(export_group)
cli.add_command(list_command)
cli.add_command(stats_command)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command()
@click.argument("config_file", type=click.Path(exists=True, path_type=Path))
def validate(config_file: Path) -> None:
    """Validate a configuration file.

    Example:
        clinic-records config validate config/config.json
    """
    try:
        config_obj = load_config(config_file)
    except ConfigurationError as e:
        click.echo(click.style("✗", fg="red", bold=True) + " Configuration validation failed")
        click.echo(f"\n{e}", err=True)
        raise click.exceptions.Exit(1)

    click.echo(click.style("✓", fg="green", bold=True) + " Configuration is valid")
    click.echo(f"\nConfiguration file: {config_file}")
    click.echo("\nStore:")
    click.echo(f"  Backend:     {config_obj.store.backend}")
    if config_obj.store.backend == "http":
        click.echo(f"  Base URL:    {config_obj.store.base_url}")
        click.echo(f"  Timeout:     {config_obj.store.timeout}s, {config_obj.store.max_retries} retries")
    else:
        click.echo(f"  JSON file:   {config_obj.store.json_path}")

    click.echo("\nImporter:")
    click.echo(f"  Code policy: {config_obj.importer.code_policy}")
    click.echo(f"  Sweep:       {config_obj.importer.uniqueness_sweep}")
    click.echo(f"  Workers:     {config_obj.importer.max_workers}")

    click.echo("\nLogging:")
    click.echo(f"  Level:       {config_obj.logging.level}")
    click.echo(f"  Log file:    {config_obj.logging.log_file}")
    click.echo(f"  Redact PII:  {config_obj.logging.redact_pii}")


@cli.command()
def version() -> None:
    """Display version information."""
    click.echo(f"clinic-records version {__version__}")


if __name__ == "__main__":
    cli()
