"""Entry point for running clinic_records as a module.

This allows the package to be executed as:
    python -m clinic_records
"""

from clinic_records.cli.main import cli

if __name__ == "__main__":
    cli()
