"""Integration tests for the import, export and re-import workflow.

These tests drive the CLI end to end against a JSON file store in a
temporary directory.
"""

import json
from datetime import datetime

import pandas as pd
import pytest
from click.testing import CliRunner

from clinic_records.cli.main import cli
from clinic_records.models.record import Gender, PatientStatus
from clinic_records.store.json_store import JsonFileStore

pytestmark = pytest.mark.integration


def _write_config(path, store_path, log_path, **importer):
    path.write_text(
        json.dumps(
            {
                "store": {"backend": "json", "json_path": str(store_path)},
                "importer": importer,
                "logging": {"log_file": str(log_path)},
            }
        ),
        encoding="utf-8",
    )
    return path


class TestSpreadsheetToExportRoundTrip:
    """Import a workbook, export the database and restore it elsewhere."""

    def test_workbook_import_export_and_restore(self, tmp_path) -> None:
        # Arrange
        runner = CliRunner()
        clinic_store = tmp_path / "clinic" / "patients.json"
        restored_store = tmp_path / "restored" / "patients.json"
        clinic_config = _write_config(tmp_path / "clinic.json", clinic_store, tmp_path / "clinic.log")
        restore_config = _write_config(
            tmp_path / "restore.json",
            restored_store,
            tmp_path / "restore.log",
            code_policy="live_store",
            uniqueness_sweep=True,
        )

        workbook = tmp_path / "patients.xlsx"
        pd.DataFrame(
            {
                "Name (Arabic)": ["علي حسن", None, "سارة أحمد", "نور"],
                "Gender": ["ذكر", "Female", "أنثى", "اخرى"],
                "Diagnosis": ["Fracture", "Burn", None, "Cleft lip"],
                "Visit Date": [datetime(2024, 11, 1), None, 45600, "2024-09-30"],
                "Status": ["قبل العملية", None, "post-op", "Op"],
                "Phone": ["07701234567", None, None, None],
            }
        ).to_excel(workbook, index=False)
        export_file = tmp_path / "backup" / "export.json"

        # Act
        imported = runner.invoke(cli, ["--config", str(clinic_config), "import", str(workbook)])
        exported = runner.invoke(cli, ["--config", str(clinic_config), "export", "json", str(export_file)])
        restored = runner.invoke(cli, ["--config", str(restore_config), "import", str(export_file), "--json"])

        # Assert
        assert imported.exit_code == 1
        assert "Failed to import row 2: Name cell is empty" in imported.output
        assert exported.exit_code == 0
        assert restored.exit_code == 0

        originals = {r.full_name_arabic: r for r in JsonFileStore(clinic_store).list_all()}
        assert set(originals) == {"علي حسن", "سارة أحمد", "نور"}
        assert originals["علي حسن"].status == PatientStatus.PRE_OP
        assert originals["علي حسن"].visited_date == "2024-11-01"
        assert originals["علي حسن"].extra == {"Phone": "07701234567"}
        assert originals["سارة أحمد"].gender == Gender.FEMALE
        assert originals["سارة أحمد"].visited_date == "2024-11-04"
        assert originals["سارة أحمد"].diagnosis == "Undiagnosed"
        assert originals["نور"].gender == Gender.OTHER
        assert originals["نور"].status == PatientStatus.DIAGNOSED
        assert len({r.code for r in originals.values()}) == 3

        copies = {r.full_name_arabic: r for r in JsonFileStore(restored_store).list_all()}
        assert set(copies) == set(originals)
        for name, original in originals.items():
            assert copies[name].code == original.code
            assert copies[name].created_at == original.created_at
            assert copies[name].diagnoses == original.diagnoses
            assert copies[name].id != original.id

        payload = json.loads(restored.stdout)
        assert payload["shape"] == "JsonExport"
        assert payload["duplicateCodes"] == {}

    def test_restoring_twice_is_refused_under_live_store(self, tmp_path) -> None:
        # Arrange
        runner = CliRunner()
        store_path = tmp_path / "patients.json"
        config = _write_config(tmp_path / "config.json", store_path, tmp_path / "app.log", code_policy="live_store")
        export_file = tmp_path / "export.json"
        export_file.write_text(
            json.dumps({"patients": [{"code": "2023/02/0001", "fullNameArabic": "علي"}], "version": "1.0.0"}),
            encoding="utf-8",
        )

        # Act
        first = runner.invoke(cli, ["--config", str(config), "import", str(export_file)])
        second = runner.invoke(cli, ["--config", str(config), "import", str(export_file)])

        # Assert
        assert first.exit_code == 0
        assert second.exit_code == 1
        assert "Patient code 2023/02/0001 is already in use" in second.output
        assert len(JsonFileStore(store_path).list_all()) == 1

    def test_batch_counter_duplicates_reported_by_sweep(self, tmp_path) -> None:
        # Arrange
        runner = CliRunner()
        store_path = tmp_path / "patients.json"
        config = _write_config(tmp_path / "config.json", store_path, tmp_path / "app.log")
        csv_file = tmp_path / "patients.csv"
        csv_file.write_text("Name,Date\nAli,2024-11-01\n", encoding="utf-8")

        # Act
        runner.invoke(cli, ["--config", str(config), "import", str(csv_file)])
        second = runner.invoke(cli, ["--config", str(config), "import", str(csv_file), "--sweep", "--json"])

        # Assert
        assert second.exit_code == 0
        payload = json.loads(second.stdout)
        assert payload["successCount"] == 1
        assert len(payload["duplicateCodes"]) == 1
        assert len(next(iter(payload["duplicateCodes"].values()))) == 2
