"""
Reconciliation Strategies
-------------------------
The three join algorithms that classify the records of one file pair into
matched, only-left and only-right sets.

All strategies produce the same partition for the same inputs:
- InMemoryJoin keeps the classified records in lists on the result
- StreamingJoin writes them incrementally to temp files
- ChunkedJoin bounds memory by indexing the left file one chunk at a time

Left keys follow first-seen-wins: a later left row whose key is already known
is logged, counted as a duplicate and otherwise ignored. Right rows are never
deduplicated; a right row matches only while its key is still unclaimed.
"""

import os
import re
import time
import shutil
import logging
import tempfile
from contextlib import closing
from enum import Enum
from typing import Dict, Set, Optional

from csv_reconcile.errors import RecordProcessingError
from csv_reconcile.models.data_models import Record, ReconciliationConfig, FileComparisonResult
from csv_reconcile.core.key_generator import try_generate_key
from csv_reconcile.utils.cancellation import CancellationToken, check_cancelled
from csv_reconcile.utils.csv_io import PandasCsvReader, PandasCsvWriter

logger = logging.getLogger(__name__)

MERGE_CONFLICT_SUFFIX = "_B"
RECORD_OVERHEAD_BYTES = 100

# Row-level errors kept on a result; the rest are logged and counted
MAX_RECORDED_ERRORS = 100

MATCHED_FILE = "matched.csv"
ONLY_LEFT_FILE = "only-in-left.csv"
ONLY_RIGHT_FILE = "only-in-right.csv"


class JoinMode(str, Enum):
    IN_MEMORY = "in-memory"
    STREAMING = "streaming"
    CHUNKED = "chunked"


def merge_records(left: Record, right: Record) -> Record:
    """
    Combine two matching records into one.

    All left fields are kept. A right field with a new name is added; one whose
    name exists on the left with a different value is added again under
    '{name}_B'. Equal values are kept once.

    Args:
        left: The record from the left file
        right: The record from the right file

    Returns:
        Record: The merged record, numbered like the left record
    """
    merged = dict(left.fields)
    for name, value in right.fields.items():
        if name not in left.fields:
            merged[name] = value
        elif left.fields[name] != value:
            merged[f"{name}{MERGE_CONFLICT_SUFFIX}"] = value

    return Record(
        fields=merged,
        source_file=f"{left.source_file} + {right.source_file}",
        line_number=left.line_number,
    )


def estimate_record_size(record: Record, char_width: int = 2, overhead: int = RECORD_OVERHEAD_BYTES) -> int:
    """Rough in-memory footprint of a record, used to size left-side chunks."""
    size = overhead
    for name, value in record.fields.items():
        size += char_width * len(name) + char_width * len(value)
    return size


class OutputSink:
    """
    Receives classified records for one pair and keeps the result's counts.

    At most max_errors row-level errors are stored on the result. Later ones
    are still logged, and finish() adds a single line with how many were left out.
    """

    def __init__(self, result: FileComparisonResult, max_errors: Optional[int] = None):
        self.result = result
        self.max_errors = MAX_RECORDED_ERRORS if max_errors is None else max_errors
        self.suppressed_errors = 0

    def matched(self, record: Record) -> None:
        self.result.matched_count += 1
        self._emit("matched", record)

    def only_left(self, record: Record) -> None:
        self.result.only_left_count += 1
        self._emit("only_left", record)

    def only_right(self, record: Record) -> None:
        self.result.only_right_count += 1
        self._emit("only_right", record)

    def record_error(self, message: str) -> None:
        logger.error(f"[{self.result.label}] {message}")
        if len(self.result.errors) < self.max_errors:
            self.result.errors.append(message)
        else:
            self.suppressed_errors += 1

    def duplicate_left(self, record: Record, key: str) -> None:
        self.result.duplicate_left_count += 1
        logger.warning(
            f"[{self.result.label}] Duplicate key '{key}' in {record.source_file} "
            f"line {record.line_number}; keeping the first occurrence"
        )

    def finish(self) -> None:
        if self.suppressed_errors:
            self.result.errors.append(f"{self.suppressed_errors} more errors not listed (see log)")

    def abort(self) -> None:
        pass

    def _emit(self, group: str, record: Record) -> None:
        raise NotImplementedError


class InMemorySink(OutputSink):
    """Keeps classified records in the result's lists."""

    def _emit(self, group: str, record: Record) -> None:
        getattr(self.result, f"{group}_records").append(record)


class TempFileSink(OutputSink):
    """
    Writes classified records to three CSV files in a per-pair temp directory.

    The directory and everything in it is removed by abort(), which callers
    invoke on any exception including cancellation.
    """

    def __init__(
        self,
        result: FileComparisonResult,
        writer: PandasCsvWriter,
        delimiter: str = ",",
        retain_records: bool = False,
        temp_root: Optional[str] = None
    ):
        super().__init__(result)
        self.retain_records = retain_records

        if temp_root:
            os.makedirs(temp_root, exist_ok=True)
        safe_label = re.sub(r"[^A-Za-z0-9_.-]+", "_", result.label)[:40]
        self.temp_dir = tempfile.mkdtemp(prefix=f"csv-reconcile-{safe_label}-", dir=temp_root)

        self._writers = {}
        try:
            for group, file_name in (
                ("matched", MATCHED_FILE),
                ("only_left", ONLY_LEFT_FILE),
                ("only_right", ONLY_RIGHT_FILE),
            ):
                self._writers[group] = writer.open_incremental(os.path.join(self.temp_dir, file_name), delimiter)
        except BaseException:
            self.abort()
            raise

        logger.debug(f"[{result.label}] Writing temporary output to {self.temp_dir}")

    def _emit(self, group: str, record: Record) -> None:
        try:
            self._writers[group].write_one(record)
        except RecordProcessingError as e:
            self.record_error(str(e))
        if self.retain_records:
            getattr(self.result, f"{group}_records").append(record)

    def finish(self) -> None:
        super().finish()
        paths = {group: w.close() for group, w in self._writers.items()}

        self.result.matched_file_path = paths["matched"]
        self.result.only_left_file_path = paths["only_left"]
        self.result.only_right_file_path = paths["only_right"]

        if any(paths.values()):
            self.result.temp_dir = self.temp_dir
        else:
            shutil.rmtree(self.temp_dir, ignore_errors=True)

    def abort(self) -> None:
        for w in self._writers.values():
            w.abort()
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        self.result.matched_file_path = None
        self.result.only_left_file_path = None
        self.result.only_right_file_path = None
        self.result.temp_dir = None
        logger.debug(f"[{self.result.label}] Removed temporary output {self.temp_dir}")


class JoinStrategy:
    """
    Base class for the join algorithms.

    reconcile() handles the missing-file cases and the result bookkeeping;
    subclasses implement _join() for the case where both files exist.
    """

    join_mode: JoinMode

    def __init__(self, reader: PandasCsvReader):
        self.reader = reader

    def reconcile(
        self,
        left_path: str,
        right_path: str,
        config: ReconciliationConfig,
        label: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> FileComparisonResult:
        """
        Reconcile one file pair.

        Args:
            left_path: Left file, or an empty string when it is missing
            right_path: Right file, or an empty string when it is missing
            config: Run configuration (matching rule, delimiter, header flag)
            label: Name used in results and logs (defaults to the file name)
            cancel_token: Checked once per row

        Returns:
            FileComparisonResult: Counts, records or temp file paths, and errors

        Raises:
            ReconciliationCancelled: If the token is cancelled; temp output is removed first
        """
        start = time.perf_counter()
        if label is None:
            label = os.path.basename(left_path or right_path)

        result = FileComparisonResult(
            label=label,
            left_path=left_path or "",
            right_path=right_path or "",
            exists_left=bool(left_path) and os.path.isfile(left_path),
            exists_right=bool(right_path) and os.path.isfile(right_path),
            join_mode=self.join_mode.value,
        )

        sink = self._open_sink(result, config)
        try:
            if result.exists_left and result.exists_right:
                self._join(left_path, right_path, config, sink, cancel_token)
            else:
                self._classify_one_side(result, config, sink, cancel_token)
            sink.finish()
        except BaseException:
            sink.abort()
            raise

        result.processing_duration = time.perf_counter() - start
        return result

    def _open_sink(self, result: FileComparisonResult, config: ReconciliationConfig) -> OutputSink:
        return InMemorySink(result)

    def _join(
        self,
        left_path: str,
        right_path: str,
        config: ReconciliationConfig,
        sink: OutputSink,
        cancel_token: Optional[CancellationToken]
    ) -> None:
        raise NotImplementedError

    def _read(self, path: str, config: ReconciliationConfig, cancel_token: Optional[CancellationToken]):
        return self.reader.read_stream(path, config.delimiter, config.has_header_row, cancel_token)

    def _classify_one_side(
        self,
        result: FileComparisonResult,
        config: ReconciliationConfig,
        sink: OutputSink,
        cancel_token: Optional[CancellationToken]
    ) -> None:
        # No join is possible; every readable row of the present file is unmatched
        if not result.exists_left:
            sink.record_error(f"File not found in left directory: {result.left_path or result.label}")
        if not result.exists_right:
            sink.record_error(f"File not found in right directory: {result.right_path or result.label}")

        rule = config.matching_rule

        if result.exists_left:
            seen: Set[str] = set()
            for record in self._read(result.left_path, config, cancel_token):
                key_result = try_generate_key(record, rule)
                if not key_result.ok:
                    sink.record_error(key_result.error)
                    continue
                if key_result.key in seen:
                    sink.duplicate_left(record, key_result.key)
                    continue
                seen.add(key_result.key)
                sink.only_left(record)
            result.total_left = len(seen)

        if result.exists_right:
            for record in self._read(result.right_path, config, cancel_token):
                key_result = try_generate_key(record, rule)
                if not key_result.ok:
                    sink.record_error(key_result.error)
                    continue
                result.total_right += 1
                sink.only_right(record)


class InMemoryJoin(JoinStrategy):
    """
    Hash join over a key map of the left file.

    Time is O(|left| + |right|); memory holds the left index and all output.
    """

    join_mode = JoinMode.IN_MEMORY

    def _join(self, left_path, right_path, config, sink, cancel_token):
        rule = config.matching_rule
        result = sink.result

        # Index the left side, first occurrence of each key wins
        left_index: Dict[str, Record] = {}
        for record in self._read(left_path, config, cancel_token):
            key_result = try_generate_key(record, rule)
            if not key_result.ok:
                sink.record_error(key_result.error)
                continue
            if key_result.key in left_index:
                sink.duplicate_left(record, key_result.key)
                continue
            left_index[key_result.key] = record
        result.total_left = len(left_index)

        # Probe with the right side, claiming each left key at most once
        for record in self._read(right_path, config, cancel_token):
            key_result = try_generate_key(record, rule)
            if not key_result.ok:
                sink.record_error(key_result.error)
                continue
            result.total_right += 1

            left = left_index.pop(key_result.key, None)
            if left is not None:
                sink.matched(merge_records(left, record))
            else:
                sink.only_right(record)

        # Whatever was never claimed, in left file order
        for record in left_index.values():
            check_cancelled(cancel_token)
            sink.only_left(record)


class StreamingJoin(InMemoryJoin):
    """
    The in-memory hash join with its output written to temp files.

    Only output memory is bounded; the left key map is still fully built.
    """

    join_mode = JoinMode.STREAMING

    def __init__(self, reader: PandasCsvReader, writer: PandasCsvWriter):
        super().__init__(reader)
        self.writer = writer

    def _open_sink(self, result, config):
        return TempFileSink(
            result,
            self.writer,
            delimiter=config.delimiter,
            retain_records=config.retain_records_in_memory,
            temp_root=config.temp_dir,
        )


class ChunkedJoin(StreamingJoin):
    """
    Bounded-memory join for inputs too large to index at once.

    The left file is cut into chunks by estimated record size. Each chunk is
    matched against a full pass over the right file. A final right pass emits
    the right rows that no chunk claimed, and a left re-scan recovers the
    records of left keys that never matched (chunks are not kept).

    The right file is read once per chunk plus once more, so I/O grows with
    chunks x |right|. This is the slow spot for very large inputs.
    """

    join_mode = JoinMode.CHUNKED

    def __init__(self, reader: PandasCsvReader, writer: PandasCsvWriter, chunk_size_bytes: int):
        super().__init__(reader, writer)
        if chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        self.chunk_size_bytes = chunk_size_bytes

    def _join(self, left_path, right_path, config, sink, cancel_token):
        rule = config.matching_rule
        result = sink.result

        seen_left: Set[str] = set()
        matched_keys: Set[str] = set()
        pending_left: Set[str] = set()

        chunk: Dict[str, Record] = {}
        chunk_bytes = 0
        chunk_count = 0

        for record in self._read(left_path, config, cancel_token):
            key_result = try_generate_key(record, rule)
            if not key_result.ok:
                sink.record_error(key_result.error)
                continue
            if key_result.key in seen_left:
                sink.duplicate_left(record, key_result.key)
                continue
            seen_left.add(key_result.key)

            chunk[key_result.key] = record
            chunk_bytes += estimate_record_size(record)
            if chunk_bytes >= self.chunk_size_bytes:
                chunk_count += 1
                self._match_chunk(chunk, chunk_count, right_path, config, sink, matched_keys, pending_left, cancel_token)
                chunk = {}
                chunk_bytes = 0

        if chunk:
            chunk_count += 1
            self._match_chunk(chunk, chunk_count, right_path, config, sink, matched_keys, pending_left, cancel_token)

        result.total_left = len(seen_left)
        logger.info(f"[{result.label}] Processed {chunk_count} chunks of left records")

        self._emit_unmatched_right(right_path, config, sink, matched_keys, cancel_token)
        self._recover_unmatched_left(left_path, config, sink, pending_left, cancel_token)

    def _match_chunk(
        self,
        chunk: Dict[str, Record],
        chunk_number: int,
        right_path: str,
        config: ReconciliationConfig,
        sink: OutputSink,
        matched_keys: Set[str],
        pending_left: Set[str],
        cancel_token: Optional[CancellationToken]
    ) -> None:
        logger.debug(f"[{sink.result.label}] Matching chunk {chunk_number} ({len(chunk)} records)")
        rule = config.matching_rule

        for record in self._read(right_path, config, cancel_token):
            key_result = try_generate_key(record, rule)
            # Key errors on the right are reported once, by the final pass
            if not key_result.ok:
                continue
            left = chunk.pop(key_result.key, None)
            if left is not None:
                sink.matched(merge_records(left, record))
                matched_keys.add(key_result.key)

        pending_left.update(chunk.keys())

    def _emit_unmatched_right(
        self,
        right_path: str,
        config: ReconciliationConfig,
        sink: OutputSink,
        matched_keys: Set[str],
        cancel_token: Optional[CancellationToken]
    ) -> None:
        rule = config.matching_rule
        # The first right row of each matched key is the one a chunk claimed
        claimed: Set[str] = set()

        for record in self._read(right_path, config, cancel_token):
            key_result = try_generate_key(record, rule)
            if not key_result.ok:
                sink.record_error(key_result.error)
                continue
            sink.result.total_right += 1

            if key_result.key in matched_keys and key_result.key not in claimed:
                claimed.add(key_result.key)
                continue
            sink.only_right(record)

    def _recover_unmatched_left(
        self,
        left_path: str,
        config: ReconciliationConfig,
        sink: OutputSink,
        pending_left: Set[str],
        cancel_token: Optional[CancellationToken]
    ) -> None:
        if not pending_left:
            return

        rule = config.matching_rule
        with closing(self._read(left_path, config, cancel_token)) as records:
            for record in records:
                key_result = try_generate_key(record, rule)
                if not key_result.ok or key_result.key not in pending_left:
                    continue
                pending_left.discard(key_result.key)
                sink.only_left(record)
                if not pending_left:
                    break

