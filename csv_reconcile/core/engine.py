"""
Reconciliation Engine
---------------------
Chooses the join strategy for each file pair and runs it.
"""

import os
import logging
from typing import Optional

from csv_reconcile.errors import PairFatalError, ReconciliationCancelled
from csv_reconcile.models.data_models import ReconciliationConfig, FilePair, FileComparisonResult, OutputMode
from csv_reconcile.core.strategies import JoinMode, JoinStrategy, InMemoryJoin, StreamingJoin, ChunkedJoin
from csv_reconcile.utils.cancellation import CancellationToken
from csv_reconcile.utils.csv_io import PandasCsvReader, PandasCsvWriter

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def chunk_threshold_bytes(config: ReconciliationConfig) -> int:
    """Combined input size above which the chunked join is used."""
    return max(config.memory_ceiling_mb, 2 * config.chunk_size_mb) * BYTES_PER_MB


def _file_size(path: str) -> int:
    if path and os.path.isfile(path):
        return os.path.getsize(path)
    return 0


def select_join_mode(
    left_path: str,
    right_path: str,
    config: ReconciliationConfig,
    output_mode: Optional[OutputMode] = None
) -> JoinMode:
    """
    Pick the join for a pair from the input sizes and the output mode.

    Args:
        left_path: Left file (may be empty)
        right_path: Right file (may be empty)
        config: Provides the memory ceiling and chunk size
        output_mode: Engine output mode (defaults to the config's)

    Returns:
        JoinMode: CHUNKED above the size threshold, else STREAMING or IN_MEMORY
    """
    if output_mode is None:
        output_mode = config.output_mode

    try:
        combined = _file_size(left_path) + _file_size(right_path)
    except OSError as e:
        logger.warning(f"Could not read file sizes for {left_path} / {right_path}: {e}")
        combined = 0

    if combined > chunk_threshold_bytes(config):
        return JoinMode.CHUNKED
    if output_mode == OutputMode.STREAMING:
        return JoinMode.STREAMING
    return JoinMode.IN_MEMORY


class ReconciliationEngine:
    """
    Reconciles file pairs with the join suited to their size.

    The output mode is fixed at construction. STREAMING needs a writer;
    IN_MEMORY works without one, in which case large pairs are joined in
    memory as well since the chunked join writes temp files.
    """

    def __init__(
        self,
        config: ReconciliationConfig,
        reader: Optional[PandasCsvReader] = None,
        writer: Optional[PandasCsvWriter] = None,
        output_mode: Optional[OutputMode] = None
    ):
        self.config = config
        self.reader = reader or PandasCsvReader()
        self.output_mode = output_mode or config.output_mode

        if self.output_mode == OutputMode.STREAMING and writer is None:
            writer = PandasCsvWriter()
        self.writer = writer

    def strategy_for(self, pair: FilePair) -> JoinStrategy:
        """Build the strategy to use for one pair."""
        mode = select_join_mode(pair.left_path, pair.right_path, self.config, self.output_mode)

        if mode == JoinMode.CHUNKED:
            if self.writer is not None:
                return ChunkedJoin(self.reader, self.writer, self.config.chunk_size_mb * BYTES_PER_MB)
            logger.warning(f"[{pair.label}] Inputs exceed the chunking threshold but no writer is configured; joining in memory")
            return InMemoryJoin(self.reader)
        if mode == JoinMode.STREAMING:
            return StreamingJoin(self.reader, self.writer)
        return InMemoryJoin(self.reader)

    def reconcile(self, pair: FilePair, cancel_token: Optional[CancellationToken] = None) -> FileComparisonResult:
        """
        Reconcile one pair.

        Args:
            pair: The files to compare
            cancel_token: Shared cancellation signal

        Returns:
            FileComparisonResult: The pair's outcome

        Raises:
            ReconciliationCancelled: If cancellation was requested
            PairFatalError: For any other unexpected failure
        """
        strategy = self.strategy_for(pair)
        logger.info(f"Reconciling {pair.label} using {strategy.join_mode.value} join")

        try:
            result = strategy.reconcile(pair.left_path, pair.right_path, self.config, pair.label, cancel_token)
        except ReconciliationCancelled:
            logger.warning(f"Reconciliation of {pair.label} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Unexpected error reconciling {pair.label}: {e}", exc_info=True)
            raise PairFatalError(pair.label, e) from e

        logger.info(
            f"Completed {pair.label}: matched={result.matched_count}, "
            f"only_left={result.only_left_count}, only_right={result.only_right_count}, "
            f"errors={len(result.errors)} in {result.processing_duration:.2f}s"
        )
        return result
