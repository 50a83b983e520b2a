"""Tests for comparison export."""

import csv
import json
from pathlib import Path

import pytest

from db_snapshot.schema.exporter import CSV_HEADER, export_comparison
from db_snapshot.schema.models import ComparisonResult, DiffType, SchemaDiff

RESULT = ComparisonResult(
    source="prod",
    target="staging",
    diffs=(
        SchemaDiff(
            diff_type=DiffType.MISSING_COLUMN,
            table="users",
            name="email",
            expected="VARCHAR(255)",
            details="Column email is missing",
            fix='ALTER TABLE "public"."users" ADD COLUMN "email" VARCHAR(255);',
        ),
        SchemaDiff(diff_type=DiffType.MISSING_FUNCTION, name="touch()", details="Function touch() is missing"),
    ),
)


class TestExportComparison:
    def test_csv(self, tmp_path: Path) -> None:
        path = export_comparison(RESULT, tmp_path / "reports" / "drift.csv")

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert rows[1] == [
            "users",
            "missing column",
            "email",
            "VARCHAR(255)",
            "-",
            "Column email is missing",
            'ALTER TABLE "public"."users" ADD COLUMN "email" VARCHAR(255);',
        ]
        assert rows[2][:3] == ["-", "missing function", "touch()"]

    def test_json(self, tmp_path: Path) -> None:
        path = export_comparison(RESULT, str(tmp_path / "drift.json"))
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["source"] == "prod"
        assert data["diffs"][0]["diff_type"] == "MISSING_COLUMN"
        assert ComparisonResult.model_validate(data) == RESULT

    def test_unknown_extension(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_comparison(RESULT, tmp_path / "drift.xlsx")
        assert not (tmp_path / "drift.xlsx").exists()
