"""Unit tests for CLI helper functions and commands."""

import json
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from dteflow.__main__ import (
    _echo_outcome,
    cli,
    collect_documents,
    format_violation,
    load_document,
    parse_period,
)
from dteflow.domain.models import (
    FlowDirection,
    Severity,
    Status,
    ValidationViolation,
    WorkflowOutcome,
)


class TestCollectDocuments:
    """Tests for collect_documents."""

    def test_single_json_file(self, tmp_path: Path) -> None:
        doc = tmp_path / "dte.json"
        doc.touch()
        assert collect_documents(doc, recursive=False) == [doc]

    def test_single_non_json_file(self, tmp_path: Path) -> None:
        txt = tmp_path / "dte.txt"
        txt.touch()
        assert collect_documents(txt, recursive=False) == []

    def test_directory_non_recursive(self, tmp_path: Path) -> None:
        (tmp_path / "a.json").touch()
        (tmp_path / "b.json").touch()
        subdir = tmp_path / "sub"
        subdir.mkdir()
        (subdir / "c.json").touch()

        result = collect_documents(tmp_path, recursive=False)
        assert len(result) == 2
        assert all(p.parent == tmp_path for p in result)

    def test_directory_recursive(self, tmp_path: Path) -> None:
        (tmp_path / "a.json").touch()
        subdir = tmp_path / "sub"
        subdir.mkdir()
        (subdir / "b.json").touch()

        assert len(collect_documents(tmp_path, recursive=True)) == 2

    def test_returns_sorted(self, tmp_path: Path) -> None:
        for name in ("z.json", "a.json", "m.json"):
            (tmp_path / name).touch()

        names = [p.name for p in collect_documents(tmp_path, recursive=False)]
        assert names == ["a.json", "m.json", "z.json"]


class TestLoadDocument:
    def test_reads_object(self, tmp_path: Path) -> None:
        path = tmp_path / "dte.json"
        path.write_text('{"identificacion": {}}', encoding="utf-8")
        assert load_document(path) == {"identificacion": {}}

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "dte.json"
        path.write_text("{not json")
        with pytest.raises(click.BadParameter, match="not valid JSON"):
            load_document(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "dte.json"
        path.write_text("[1, 2]")
        with pytest.raises(click.BadParameter, match="JSON object"):
            load_document(path)


class TestParsePeriod:
    def test_valid(self) -> None:
        assert parse_period("2024-03") == "2024-03"

    @pytest.mark.parametrize("value", ["2024-3", "2024-13", "2024-00", "24-03", "2024/03"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(click.BadParameter, match="YYYY-MM"):
            parse_period(value)


class TestFormatViolation:
    def test_blocking_with_field(self) -> None:
        violation = ValidationViolation("RULE-0400", "resumen.totalLetras", "Missing currency")
        assert format_violation(violation) == "✗ RULE-0400 [resumen.totalLetras]: Missing currency"

    def test_advisory_without_field(self) -> None:
        violation = ValidationViolation("RULE-X", None, "Check this", Severity.ADVISORY)
        assert format_violation(violation) == "! RULE-X: Check this"


class TestEchoOutcome:
    def test_unrecorded_ledger_on_stderr(self, capsys) -> None:
        outcome = WorkflowOutcome(
            status=Status.COMPLETED,
            direction=FlowDirection.RECEPTION,
            ledger_error="disk full",
        )

        _echo_outcome(outcome)

        captured = capsys.readouterr()
        assert "status: completed" in captured.out
        assert "ledger: not recorded: disk full" in captured.err


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid_document(self, tmp_path: Path, raw_invoice: dict) -> None:
        path = tmp_path / "dte.json"
        path.write_text(json.dumps(raw_invoice))

        result = CliRunner().invoke(cli, ["validate", str(path)])

        assert result.exit_code == 0
        assert "0 blocking" in result.output

    def test_invalid_document_exits_nonzero(self, tmp_path: Path, raw_invoice: dict) -> None:
        raw_invoice["resumen"]["totalLetras"] = "CIENTO TRECE 00/100"
        path = tmp_path / "dte.json"
        path.write_text(json.dumps(raw_invoice))

        result = CliRunner().invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "✗" in result.output


class TestLedgerCommand:
    def test_lists_nothing(self, tmp_path: Path) -> None:
        config = tmp_path / "config.toml"
        config.write_text(f'[paths]\nbase = "{tmp_path / "data"}"\n')

        result = CliRunner().invoke(cli, ["-c", str(config), "ledger"])

        assert result.exit_code == 0
        assert "No ledger periods stored" in result.output

    def test_empty_period(self, tmp_path: Path) -> None:
        config = tmp_path / "config.toml"
        config.write_text(f'[paths]\nbase = "{tmp_path / "data"}"\n')

        result = CliRunner().invoke(cli, ["-c", str(config), "ledger", "2024-03"])

        assert result.exit_code == 0
        assert "output_tax: 0" in result.output

    def test_bad_period(self, tmp_path: Path) -> None:
        config = tmp_path / "config.toml"
        config.write_text(f'[paths]\nbase = "{tmp_path / "data"}"\n')

        result = CliRunner().invoke(cli, ["-c", str(config), "ledger", "March"])

        assert result.exit_code != 0
