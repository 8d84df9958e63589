"""
Tests for the csv-reconcile command line interface.
"""

import os
import logging

import pytest
from typer.testing import CliRunner

from conftest import write_csv, id_rows
from csv_reconcile.cli import app, EXIT_PAIR_FAILED, EXIT_CONFIG_ERROR

CONFIGS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "Configs")
ID_CONFIG = os.path.join(CONFIGS_DIR, "large-file-config.json")

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """Each run reconfigures the root logger; put the original handlers back."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def run_args(left, right, output, *extra):
    return ["run", "--left", str(left), "--right", str(right), "--config", ID_CONFIG,
            "--output", str(output), "--parallelism", "2", *extra]


def test_generate_reports_expected_counts(tmp_path):
    result = runner.invoke(app, [
        "generate", "--left-dir", str(tmp_path / "a"), "--right-dir", str(tmp_path / "b"),
        "--rows", "40", "--overlap", "50", "--seed", "1",
    ])

    assert result.exit_code == 0, result.output
    assert "Expected: matched=20, only_left=20, only_right=20" in result.output
    assert os.path.isfile(tmp_path / "a" / "sample.csv")
    assert os.path.isfile(tmp_path / "b" / "sample.csv")


def test_generate_rejects_bad_overlap(tmp_path):
    result = runner.invoke(app, [
        "generate", "--left-dir", str(tmp_path / "a"), "--right-dir", str(tmp_path / "b"), "--overlap", "150",
    ])
    assert result.exit_code == EXIT_CONFIG_ERROR


def test_run_success(dirs, tmp_path):
    left, right = dirs
    write_csv(left / "data.csv", id_rows(1, 2, 3))
    write_csv(right / "data.csv", id_rows(1, 2, 4))
    output = tmp_path / "out"

    result = runner.invoke(app, run_args(left, right, output))

    assert result.exit_code == 0, result.output
    assert "RECONCILIATION SUMMARY" in result.output
    assert "data.csv" in result.output
    assert os.path.isfile(output / "data" / "matched.csv")
    assert os.path.isfile(output / "global-summary.json")
    assert any(name.startswith("reconciliation-") and name.endswith(".log") for name in os.listdir(output))


def test_run_with_missing_file_exits_with_failure(dirs, tmp_path):
    left, right = dirs
    write_csv(left / "data.csv", id_rows(1))
    write_csv(left / "extra.csv", id_rows(1))
    write_csv(right / "data.csv", id_rows(1))

    result = runner.invoke(app, run_args(left, right, tmp_path / "out"))

    assert result.exit_code == EXIT_PAIR_FAILED
    assert "Missing in Right" in result.output
    assert "extra.csv" in result.output


def test_run_with_missing_directory_is_a_config_error(tmp_path):
    result = runner.invoke(app, run_args(tmp_path / "nope", tmp_path, tmp_path / "out"))

    assert result.exit_code == EXIT_CONFIG_ERROR
    assert "does not exist" in result.output


def test_run_with_missing_config_file(dirs, tmp_path):
    left, right = dirs
    result = runner.invoke(app, [
        "run", "--left", str(left), "--right", str(right), "--config", str(tmp_path / "none.json"),
    ])
    assert result.exit_code == EXIT_CONFIG_ERROR


def test_run_with_semicolon_delimiter_and_no_header(dirs, tmp_path):
    left, right = dirs
    (left / "raw.csv").write_text("1;a\n2;b\n", encoding="utf-8")
    (right / "raw.csv").write_text("2;b\n3;c\n", encoding="utf-8")
    config = tmp_path / "col1.json"
    config.write_text('{"matchingFields": ["Column1"]}', encoding="utf-8")

    result = runner.invoke(app, [
        "run", "-a", str(left), "-b", str(right), "-c", str(config),
        "-o", str(tmp_path / "out"), "-d", ";", "--no-header",
    ])

    assert result.exit_code == 0, result.output
    with open(tmp_path / "out" / "raw" / "matched.csv", encoding="utf-8") as f:
        assert f.readline().strip() == "Column1;Column2"


def test_menu_quit():
    result = runner.invoke(app, ["menu", "--configs-dir", CONFIGS_DIR], input="Q\n")

    assert result.exit_code == 0
    assert "CSV RECONCILIATION TOOL" in result.output
    assert "Goodbye!" in result.output


def test_menu_help_and_invalid_choice():
    result = runner.invoke(app, ["menu", "--configs-dir", CONFIGS_DIR], input="H\n9\nq\n")

    assert result.exit_code == 0
    assert "csv-reconcile run" in result.output
    assert "Invalid choice" in result.output


def test_menu_runs_a_preset(dirs, tmp_path):
    left, right = dirs
    write_csv(left / "orders.csv", [{"InvoiceId": "A1"}, {"InvoiceId": "A2"}])
    write_csv(right / "orders.csv", [{"InvoiceId": "a1"}])
    output = tmp_path / "out"
    answers = "\n".join(["1", str(left), str(right), str(output), "1", "n"]) + "\n"

    result = runner.invoke(app, ["menu", "--configs-dir", CONFIGS_DIR], input=answers)

    assert result.exit_code == 0, result.output
    assert "Orders Reconciliation" in result.output
    assert os.path.isfile(output / "orders" / "matched.csv")
    assert os.path.isfile(output / "orders" / "only-in-left.csv")
