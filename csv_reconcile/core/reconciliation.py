"""
Reconciliation Orchestration
----------------------------
Entry points that run a whole reconciliation: validate the configuration,
pair the files, dispatch the pairs and aggregate the results.
"""

import asyncio
import logging
from typing import Optional

from csv_reconcile.models.data_models import ReconciliationConfig, ReconciliationResult
from csv_reconcile.core.aggregator import log_summary
from csv_reconcile.core.dispatcher import process_all_async
from csv_reconcile.core.engine import ReconciliationEngine, chunk_threshold_bytes, BYTES_PER_MB
from csv_reconcile.core.output import OutputGenerator
from csv_reconcile.core.pairing import build_pairs
from csv_reconcile.utils.cancellation import CancellationToken
from csv_reconcile.utils.console import ConsoleSink
from csv_reconcile.utils.csv_io import PandasCsvReader, PandasCsvWriter

logger = logging.getLogger(__name__)


def log_configuration(config: ReconciliationConfig) -> None:
    rule = config.matching_rule
    logger.info("=== CSV Reconciliation Started ===")
    logger.info(f"Left directory: {config.left_dir}")
    logger.info(f"Right directory: {config.right_dir}")
    logger.info(f"Output directory: {config.output_dir}")
    logger.info(f"Matching fields: {', '.join(rule.matching_fields)}")
    logger.info(f"Case sensitive: {rule.case_sensitive}, Trim: {rule.trim}")
    logger.info(f"Pairing mode: {config.pairing_mode.value}")
    logger.info(f"Concurrency: {config.effective_concurrency}")
    logger.info(f"Output mode: {config.output_mode.value}")
    logger.info(f"Chunking threshold: {chunk_threshold_bytes(config) // BYTES_PER_MB} MB")


async def reconcile_directories_async(
    config: ReconciliationConfig,
    reader: Optional[PandasCsvReader] = None,
    writer: Optional[PandasCsvWriter] = None,
    console: Optional[ConsoleSink] = None,
    cancel_token: Optional[CancellationToken] = None
) -> ReconciliationResult:
    """
    Reconcile every file pair of the two configured directories.

    Args:
        config: Run configuration
        reader: CSV reader (defaults to PandasCsvReader)
        writer: CSV writer (defaults to PandasCsvWriter)
        console: Console sink for progress events
        cancel_token: Shared cancellation signal

    Returns:
        ReconciliationResult: Results for every pair, sorted by label

    Raises:
        ConfigurationError: If the configuration is invalid; nothing is processed
    """
    config.validate_settings()
    log_configuration(config)

    pairs = build_pairs(config.left_dir, config.right_dir, config.pairing_mode, config.file_extension)
    engine = ReconciliationEngine(config, reader, writer)

    result = await process_all_async(
        pairs,
        engine.reconcile,
        max_concurrency=config.effective_concurrency,
        cancel_token=cancel_token,
        console=console,
    )
    log_summary(result)
    return result


def reconcile_directories(
    config: ReconciliationConfig,
    reader: Optional[PandasCsvReader] = None,
    writer: Optional[PandasCsvWriter] = None,
    console: Optional[ConsoleSink] = None,
    cancel_token: Optional[CancellationToken] = None
) -> ReconciliationResult:
    """Synchronous wrapper around reconcile_directories_async."""
    return asyncio.run(reconcile_directories_async(config, reader, writer, console, cancel_token))


def run_and_report(
    config: ReconciliationConfig,
    reader: Optional[PandasCsvReader] = None,
    writer: Optional[PandasCsvWriter] = None,
    console: Optional[ConsoleSink] = None,
    cancel_token: Optional[CancellationToken] = None
) -> ReconciliationResult:
    """Reconcile the directories and write all output files."""
    writer = writer or PandasCsvWriter()
    result = reconcile_directories(config, reader, writer, console, cancel_token)
    OutputGenerator(writer).generate_all(result, config.output_dir, config.delimiter)
    return result
