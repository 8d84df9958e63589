"""
Result Aggregation
------------------
Combines per-pair results into the run result and logs the run totals.
"""

import logging
from typing import List

from csv_reconcile.models.data_models import FileComparisonResult, ReconciliationResult

logger = logging.getLogger(__name__)


def aggregate_results(pair_results: List[FileComparisonResult], total_duration: float = 0.0) -> ReconciliationResult:
    """
    Build the run result, ordering pairs by label.

    Totals are not accumulated here; ReconciliationResult derives them from
    the pair results on access.
    """
    return ReconciliationResult(
        pair_results=sorted(pair_results, key=lambda r: r.label),
        total_duration=total_duration,
    )


def log_summary(result: ReconciliationResult) -> None:
    """Write the run totals and any missing files to the log."""
    logger.info("=== Reconciliation Complete ===")
    logger.info(f"Total files processed: {len(result.pair_results)}")
    logger.info(f"Successful: {result.successful_count}, Failed: {result.failed_count}")
    logger.info(
        f"Total records - Left: {result.total_left}, Right: {result.total_right}, "
        f"Matched: {result.total_matched}, Only left: {result.total_only_left}, "
        f"Only right: {result.total_only_right}"
    )
    logger.info(f"Total processing time: {result.total_duration:.2f}s")

    if result.missing_in_left:
        logger.warning(f"Files missing in left directory: {', '.join(result.missing_in_left)}")
    if result.missing_in_right:
        logger.warning(f"Files missing in right directory: {', '.join(result.missing_in_right)}")
