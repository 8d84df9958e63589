"""
Tests for the output files written after a run.
"""

import os
import json

from conftest import write_csv, id_rows
from csv_reconcile.models.data_models import FilePair, OutputMode
from csv_reconcile.core.aggregator import aggregate_results
from csv_reconcile.core.engine import ReconciliationEngine
from csv_reconcile.core.output import OutputGenerator, cleanup_temp_files, pair_output_dir
from csv_reconcile.utils.csv_io import PandasCsvReader


def reconcile_pair(dirs, make_config, output_mode, left_ids=(1, 2, 3), right_ids=(1, 2, 4)):
    left, right = dirs
    pair = FilePair(
        label="orders.csv",
        left_path=write_csv(left / "orders.csv", id_rows(*left_ids, Name="x")),
        right_path=write_csv(right / "orders.csv", id_rows(*right_ids, Name="y")),
    )
    config = make_config()
    return ReconciliationEngine(config, output_mode=output_mode).reconcile(pair), config


def read_ids(path):
    return sorted(r.get_field("Id") for r in PandasCsvReader().read_all(path))


def test_pair_output_dir_drops_extension(tmp_path):
    assert pair_output_dir(str(tmp_path), "orders.csv") == os.path.join(str(tmp_path), "orders")


def test_in_memory_outputs(dirs, make_config):
    result, config = reconcile_pair(dirs, make_config, OutputMode.IN_MEMORY)

    folder = OutputGenerator().generate_pair_outputs(result, config.output_dir)

    assert read_ids(os.path.join(folder, "matched.csv")) == ["1", "2"]
    assert read_ids(os.path.join(folder, "only-in-left.csv")) == ["3"]
    assert read_ids(os.path.join(folder, "only-in-right.csv")) == ["4"]

    matched = PandasCsvReader().read_all(os.path.join(folder, "matched.csv"))
    assert matched[0].fields["Name_B"] == "y"

    with open(os.path.join(folder, "reconcile-summary.json"), encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["fileName"] == "orders.csv"
    assert summary["matched"] == 2
    assert summary["onlyLeft"] == 1
    assert summary["onlyRight"] == 1
    assert summary["joinMode"] == "in-memory"
    assert summary["success"] is True


def test_streamed_outputs_are_copied_then_cleaned_up(dirs, make_config):
    result, config = reconcile_pair(dirs, make_config, OutputMode.STREAMING)
    temp_dir = result.temp_dir
    assert os.path.isdir(temp_dir)

    folder = OutputGenerator().generate_pair_outputs(result, config.output_dir)

    assert read_ids(os.path.join(folder, "matched.csv")) == ["1", "2"]
    assert read_ids(os.path.join(folder, "only-in-right.csv")) == ["4"]
    assert not os.path.exists(temp_dir)
    assert result.temp_dir is None
    assert result.matched_file_path is None


def test_empty_groups_produce_no_csv(dirs, make_config):
    result, config = reconcile_pair(dirs, make_config, OutputMode.STREAMING, (1, 2), (1, 2))

    folder = OutputGenerator().generate_pair_outputs(result, config.output_dir)

    assert sorted(os.listdir(folder)) == ["matched.csv", "reconcile-summary.json"]


def test_cleanup_without_temp_dir_is_harmless(dirs, make_config):
    result, _ = reconcile_pair(dirs, make_config, OutputMode.IN_MEMORY)
    cleanup_temp_files(result)
    cleanup_temp_files(result)
    assert result.temp_dir is None


def test_global_summary(dirs, make_config):
    result, config = reconcile_pair(dirs, make_config, OutputMode.IN_MEMORY)
    run = aggregate_results([result], 0.5)

    OutputGenerator().generate_all(run, config.output_dir)

    with open(os.path.join(config.output_dir, "global-summary.json"), encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["summary"]["totalFilesProcessed"] == 1
    assert summary["summary"]["totalMatched"] == 2
    assert summary["summary"]["totalRecordsLeft"] == 3
    assert summary["missingFiles"] == {"missingInLeft": [], "missingInRight": []}
    assert summary["fileBreakdown"][0]["fileName"] == "orders.csv"
    assert summary["totalProcessingTimeSeconds"] == 0.5
    assert "timestamp" in summary
