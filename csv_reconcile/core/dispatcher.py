"""
Parallel Dispatcher
-------------------
Runs the reconciliation of many file pairs on a bounded pool of worker
threads.

Each pair is independent. A failing or cancelled pair becomes a failed
result and never stops the rest of the batch.
"""

import os
import time
import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Callable

from csv_reconcile.errors import PairFatalError, ReconciliationCancelled
from csv_reconcile.models.data_models import FilePair, FileComparisonResult, ReconciliationResult
from csv_reconcile.core.aggregator import aggregate_results
from csv_reconcile.utils.cancellation import CancellationToken
from csv_reconcile.utils.console import ConsoleSink

logger = logging.getLogger(__name__)

ReconcileFn = Callable[[FilePair, Optional[CancellationToken]], FileComparisonResult]


def failed_result(pair: FilePair, message: str) -> FileComparisonResult:
    """Result for a pair whose reconciliation did not complete."""
    return FileComparisonResult(
        label=pair.label,
        left_path=pair.left_path,
        right_path=pair.right_path,
        exists_left=bool(pair.left_path) and os.path.isfile(pair.left_path),
        exists_right=bool(pair.right_path) and os.path.isfile(pair.right_path),
        errors=[message],
    )


def _describe(result: FileComparisonResult) -> str:
    return (
        f"Matched={result.matched_count}, OnlyLeft={result.only_left_count}, "
        f"OnlyRight={result.only_right_count}"
    )


def run_pair(
    pair: FilePair,
    reconcile_fn: ReconcileFn,
    cancel_token: Optional[CancellationToken] = None,
    console: Optional[ConsoleSink] = None
) -> FileComparisonResult:
    """
    Reconcile one pair on the current thread, converting failures to results.

    Args:
        pair: The files to compare
        reconcile_fn: Called as reconcile_fn(pair, cancel_token)
        cancel_token: Shared cancellation signal
        console: Receives processing events

    Returns:
        FileComparisonResult: The pair's result, or a failed one
    """
    worker = threading.current_thread().name
    console = console or ConsoleSink(quiet=True)

    if cancel_token is not None and cancel_token.cancelled:
        console.processing_event(worker, pair.label, "Cancelled", "")
        return failed_result(pair, "Cancelled")

    logger.info(f"Processing file pair: {pair.label} (worker: {worker})")
    console.processing_event(worker, pair.label, "Processing", "Reading records")

    try:
        result = reconcile_fn(pair, cancel_token)
    except ReconciliationCancelled:
        console.processing_event(worker, pair.label, "Cancelled", "")
        return failed_result(pair, "Cancelled")
    except Exception as e:
        cause = e.cause if isinstance(e, PairFatalError) else e
        logger.error(f"Error processing file pair: {pair.label}: {cause}")
        console.processing_event(worker, pair.label, "Error", str(cause))
        return failed_result(pair, f"Processing error: {cause}")

    if not result.exists_left or not result.exists_right:
        missing_in = "left" if not result.exists_left else "right"
        console.processing_event(worker, pair.label, "Warning", f"File missing in {missing_in}")
    elif not result.success:
        console.processing_event(worker, pair.label, "Warning", f"{len(result.errors)} error(s); {_describe(result)}")
    else:
        console.processing_event(worker, pair.label, "Completed", _describe(result))

    logger.info(f"Completed file pair: {pair.label} (worker: {worker})")
    return result


async def process_all_async(
    pairs: List[FilePair],
    reconcile_fn: ReconcileFn,
    max_concurrency: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    console: Optional[ConsoleSink] = None
) -> ReconciliationResult:
    """
    Reconcile all pairs with at most max_concurrency running at once.

    Args:
        pairs: Pairs to process
        reconcile_fn: Called as reconcile_fn(pair, cancel_token) on a worker thread
        max_concurrency: Worker cap (None or 0 means the processor count)
        cancel_token: Shared cancellation signal
        console: Shared console sink

    Returns:
        ReconciliationResult: Pair results sorted by label
    """
    start = time.perf_counter()
    workers = max_concurrency or os.cpu_count() or 1
    semaphore = asyncio.Semaphore(workers)
    loop = asyncio.get_running_loop()

    logger.info(f"Processing {len(pairs)} file pairs with up to {workers} workers")

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="worker") as executor:

        async def process_pair(pair: FilePair) -> FileComparisonResult:
            async with semaphore:
                return await loop.run_in_executor(executor, run_pair, pair, reconcile_fn, cancel_token, console)

        results = await asyncio.gather(*(process_pair(pair) for pair in pairs))

    return aggregate_results(list(results), time.perf_counter() - start)


def process_all(
    pairs: List[FilePair],
    reconcile_fn: ReconcileFn,
    max_concurrency: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    console: Optional[ConsoleSink] = None
) -> ReconciliationResult:
    """Synchronous wrapper around process_all_async."""
    return asyncio.run(process_all_async(pairs, reconcile_fn, max_concurrency, cancel_token, console))
