"""
Output Generation
-----------------
Writes the per-pair CSV files and JSON summaries of a run.

Layout under the output directory:
    {label without extension}/matched.csv
    {label without extension}/only-in-left.csv
    {label without extension}/only-in-right.csv
    {label without extension}/reconcile-summary.json
    global-summary.json
"""

import os
import shutil
import logging
from typing import Optional

from csv_reconcile.models.data_models import (
    FileComparisonResult,
    ReconciliationResult,
    PairSummary,
    GlobalSummary,
)
from csv_reconcile.core.strategies import MATCHED_FILE, ONLY_LEFT_FILE, ONLY_RIGHT_FILE
from csv_reconcile.utils.csv_io import PandasCsvWriter

logger = logging.getLogger(__name__)

PAIR_SUMMARY_FILE = "reconcile-summary.json"
GLOBAL_SUMMARY_FILE = "global-summary.json"


def pair_output_dir(output_dir: str, label: str) -> str:
    return os.path.join(output_dir, os.path.splitext(label)[0])


def cleanup_temp_files(result: FileComparisonResult) -> None:
    """
    Delete a streamed result's temp directory and clear its file paths.

    The paths must not be read after this call.
    """
    if result.temp_dir:
        shutil.rmtree(result.temp_dir, ignore_errors=True)
        logger.debug(f"Cleaned up temp directory {result.temp_dir}")
    result.temp_dir = None
    result.matched_file_path = None
    result.only_left_file_path = None
    result.only_right_file_path = None


class OutputGenerator:
    """Turns reconciliation results into files on disk."""

    def __init__(self, writer: Optional[PandasCsvWriter] = None):
        self.writer = writer or PandasCsvWriter()

    def generate_pair_outputs(self, result: FileComparisonResult, output_dir: str, delimiter: str = ",") -> str:
        """
        Write the CSV files and summary of one pair.

        Streamed results are copied from their temp files, which are then
        deleted. In-memory results are written from their record lists.

        Args:
            result: The pair result
            output_dir: Root output directory
            delimiter: Delimiter for in-memory results

        Returns:
            str: The pair's output folder
        """
        folder = pair_output_dir(output_dir, result.label)
        os.makedirs(folder, exist_ok=True)
        logger.info(f"Generating outputs for {result.label} in {folder}")

        if result.is_streamed:
            try:
                for source, name in (
                    (result.matched_file_path, MATCHED_FILE),
                    (result.only_left_file_path, ONLY_LEFT_FILE),
                    (result.only_right_file_path, ONLY_RIGHT_FILE),
                ):
                    if source and os.path.isfile(source):
                        shutil.copyfile(source, os.path.join(folder, name))
                        logger.debug(f"Copied {source} to {os.path.join(folder, name)}")
            finally:
                cleanup_temp_files(result)
        else:
            self.writer.write_all(os.path.join(folder, MATCHED_FILE), result.matched_records, delimiter)
            self.writer.write_all(os.path.join(folder, ONLY_LEFT_FILE), result.only_left_records, delimiter)
            self.writer.write_all(os.path.join(folder, ONLY_RIGHT_FILE), result.only_right_records, delimiter)

        summary_path = os.path.join(folder, PAIR_SUMMARY_FILE)
        with open(summary_path, "w", encoding="utf-8") as f:
            f.write(PairSummary.from_result(result).model_dump_json(indent=2, by_alias=True))
        logger.debug(f"Wrote summary to {summary_path}")

        return folder

    def generate_global_summary(self, result: ReconciliationResult, output_dir: str) -> str:
        """
        Write global-summary.json for the run.

        Returns:
            str: Path of the summary file
        """
        os.makedirs(output_dir, exist_ok=True)
        summary_path = os.path.join(output_dir, GLOBAL_SUMMARY_FILE)

        with open(summary_path, "w", encoding="utf-8") as f:
            f.write(GlobalSummary.from_result(result).model_dump_json(indent=2, by_alias=True))

        logger.info(f"Wrote global summary to {summary_path}")
        return summary_path

    def generate_all(self, result: ReconciliationResult, output_dir: str, delimiter: str = ",") -> None:
        """Write every pair's outputs followed by the global summary."""
        for pair_result in result.pair_results:
            self.generate_pair_outputs(pair_result, output_dir, delimiter)
        self.generate_global_summary(result, output_dir)
