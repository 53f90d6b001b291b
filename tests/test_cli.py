"""Tests for the headless CLI commands."""

import polars as pl
import pytest
from typer.testing import CliRunner

from reflex_pivot_table.cli import _build_app_code, app

runner = CliRunner()


@pytest.fixture()
def shirts_csv(tmp_path, shirts):
    path = tmp_path / "shirts.csv"
    shirts.collect().write_csv(path)
    return path


def test_pivot_writes_csv_file(tmp_path, shirts_csv):
    out = tmp_path / "out.csv"
    result = runner.invoke(
        app, ["pivot", str(shirts_csv), "--rows", "color", "--cols", "size", "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert out.read_text() == "color,S,M\nred,3,2\nblue,1,0\n"
    assert "Wrote 2 rows" in result.output


def test_pivot_with_filter_to_stdout(shirts_csv):
    result = runner.invoke(
        app, ["pivot", str(shirts_csv), "-r", "color", "-c", "size", "--filter", "color=red"]
    )
    assert result.exit_code == 0, result.output
    assert "color,S,M\nred,3,2\n" in result.output
    assert "blue" not in result.output.split("color,S,M", 1)[1]


def test_pivot_reports_truncation(tmp_path, shirts_csv):
    out = tmp_path / "out.csv"
    result = runner.invoke(
        app, ["pivot", str(shirts_csv), "-r", "color,size", "-n", "2", "-o", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert "Warning: Only showing first 2 rows." in result.output
    assert pl.read_csv(out).height == 2


def test_pivot_rejects_unknown_level(shirts_csv):
    result = runner.invoke(app, ["pivot", str(shirts_csv), "--filter", "color=green"])
    assert result.exit_code == 1
    assert "green" in result.output


def test_pivot_rejects_unknown_field(shirts_csv):
    result = runner.invoke(app, ["pivot", str(shirts_csv), "--rows", "weight"])
    assert result.exit_code == 1
    assert "weight" in result.output


def test_pivot_rejects_malformed_filter(shirts_csv):
    result = runner.invoke(app, ["pivot", str(shirts_csv), "--filter", "color"])
    assert result.exit_code != 0


def test_missing_file(tmp_path):
    result = runner.invoke(app, ["pivot", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_catalog_lists_fields(shirts_csv):
    result = runner.invoke(app, ["catalog", str(shirts_csv)])
    assert result.exit_code == 0, result.output
    assert "color" in result.output
    assert "size" in result.output
    assert "2 levels" in result.output


def test_catalog_with_nothing_below_threshold(shirts_csv):
    result = runner.invoke(app, ["catalog", str(shirts_csv), "--max-levels", "2"])
    assert result.exit_code == 0, result.output
    assert "No field has fewer than 2 distinct values." in result.output


def test_generated_app_code():
    code = _build_app_code('/data/odd "name".csv', 50, 1000, "600px", "Shirts")
    assert 'scan_source("/data/odd \\"name\\".csv")' in code
    assert "max_levels=50, record_limit=1000" in code
    assert 'rx.heading("Shirts"' in code
    compile(code, "pivot_app.py", "exec")
