"""
CSV Input and Output
--------------------
Reader and writer collaborators of the reconciliation engine, built on pandas.

The reader turns each data row into a Record, normalizing the header row and
skipping malformed rows with a logged warning. The writer produces CSV files
whose header is the sorted union of every field name written.
"""

import os
import json
import codecs
import logging
from typing import List, Dict, Optional, Iterable, Iterator

import pandas as pd
import charset_normalizer as cn

from csv_reconcile.errors import MissingFileError, RecordProcessingError
from csv_reconcile.models.data_models import Record
from csv_reconcile.utils.cancellation import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)

# Rows pulled from pandas per read, and rows rendered per write batch
READ_CHUNK_ROWS = 10_000
WRITE_BATCH_ROWS = 10_000

# Leading bytes inspected when guessing a file's encoding
ENCODING_SAMPLE_BYTES = 64 * 1024


def normalize_headers(raw_headers: Iterable[str]) -> List[str]:
    """
    Make header names usable as unique field names.

    Blank names become Column{n} (1-based position) and repeated names get a
    numeric suffix: Name, Name_2, Name_3.

    Args:
        raw_headers: Header cells as read from the file

    Returns:
        List[str]: Unique, non-blank column names in the original order
    """
    headers = []
    seen = set()
    for position, raw in enumerate(raw_headers, start=1):
        name = "" if raw is None else str(raw).strip()
        if not name:
            name = f"Column{position}"

        candidate = name
        suffix = 2
        while candidate in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1

        seen.add(candidate)
        headers.append(candidate)
    return headers


def detect_encoding(path: str, sample_bytes: int = ENCODING_SAMPLE_BYTES) -> str:
    """
    Guess the text encoding of a file from its leading bytes.

    UTF-8 (with or without a BOM) is recognised directly. Anything else is
    handed to charset_normalizer.

    Args:
        path: File to inspect
        sample_bytes: Number of leading bytes to read

    Returns:
        str: A codec name usable with pd.read_csv
    """
    with open(path, "rb") as f:
        raw = f.read(sample_bytes)

    if not raw or raw.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"

    try:
        raw.decode("utf-8")
        return "utf-8-sig"
    except UnicodeDecodeError as e:
        # The sample may end in the middle of a multi-byte character
        if len(raw) == sample_bytes and e.reason == "unexpected end of data":
            return "utf-8-sig"

    encoding = cn.detect(raw)["encoding"] or "utf-8"
    logger.info(f"Detected {encoding} encoding for {os.path.basename(path)}")
    return encoding


class PandasCsvReader:
    """
    Reads delimited files into Records.

    Args:
        chunk_rows: Rows pulled from pandas per read
        encoding: Fixed text encoding; detected per file when None. Bytes that
            do not decode are replaced with U+FFFD instead of failing the read.
    """

    def __init__(self, chunk_rows: int = READ_CHUNK_ROWS, encoding: Optional[str] = None):
        self.chunk_rows = chunk_rows
        self.encoding = encoding

    def read_all(
        self,
        path: str,
        delimiter: str = ",",
        has_header: bool = True,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Record]:
        """Read every row of a file into memory."""
        return list(self.read_stream(path, delimiter, has_header, cancel_token))

    def read_stream(
        self,
        path: str,
        delimiter: str = ",",
        has_header: bool = True,
        cancel_token: Optional[CancellationToken] = None
    ) -> Iterator[Record]:
        """
        Lazily read the rows of a file.

        The file is closed when the iteration finishes or the generator is
        closed early. Rows with more fields than the header are logged and
        skipped; short rows are padded with empty strings.

        Args:
            path: File to read
            delimiter: Single-character field delimiter
            has_header: Whether the first row holds the column names
            cancel_token: Checked once per row

        Yields:
            Record: One per data row, numbered from 2 when there is a header

        Raises:
            MissingFileError: If the file does not exist
            ReconciliationCancelled: If the token is cancelled mid-read
        """
        if not os.path.isfile(path):
            raise MissingFileError(path)

        source_file = os.path.basename(path)

        def skip_bad_line(bad_line: List[str]) -> None:
            logger.warning(f"Bad data found in {source_file}, row skipped: {delimiter.join(bad_line)}")
            return None

        if os.path.getsize(path) == 0:
            logger.warning(f"No data found in file: {path}")
            return

        encoding = self.encoding or detect_encoding(path)

        try:
            chunks = pd.read_csv(
                path,
                sep=delimiter,
                header=None,
                dtype=object,
                keep_default_na=False,
                na_filter=False,
                skip_blank_lines=True,
                encoding=encoding,
                encoding_errors="replace",
                engine="python",
                on_bad_lines=skip_bad_line,
                chunksize=self.chunk_rows,
            )
        except pd.errors.EmptyDataError:
            logger.warning(f"No data found in file: {path}")
            return

        headers: Optional[List[str]] = None
        line_number = 1 if has_header else 0
        row_count = 0

        with chunks:
            for chunk in chunks:
                chunk = chunk.fillna("")
                rows = chunk.itertuples(index=False, name=None)

                if headers is None:
                    if has_header:
                        first = next(rows, None)
                        if first is None:
                            continue
                        headers = normalize_headers(first)
                    else:
                        headers = [f"Column{i}" for i in range(1, chunk.shape[1] + 1)]

                for values in rows:
                    check_cancelled(cancel_token)
                    line_number += 1
                    row_count += 1
                    fields: Dict[str, str] = {
                        name: ("" if value is None else str(value))
                        for name, value in zip(headers, values)
                    }
                    yield Record(fields=fields, source_file=source_file, line_number=line_number)

        if headers is None:
            logger.warning(f"No headers found in file: {path}")
        logger.debug(f"Finished reading {row_count} records from {path}")


class IncrementalCsvWriter:
    """
    Writes records one at a time to a CSV file.

    The final header must be the sorted union of all field names, which is
    only known once the last record arrives. Records are therefore spooled as
    JSON lines next to the target and rendered to CSV on close(). Use as a
    context manager: leaving the block normally closes the writer, leaving it
    with an exception aborts it and removes every file it created.
    """

    def __init__(self, path: str, delimiter: str = ",", batch_rows: int = WRITE_BATCH_ROWS):
        self.path = path
        self.delimiter = delimiter
        self.batch_rows = batch_rows
        self.count = 0
        self.closed = False
        self._field_names = set()
        self._spool_path = f"{path}.spool"

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._spool = open(self._spool_path, "w", encoding="utf-8")

    def write_one(self, record: Record) -> None:
        """
        Append one record.

        Raises:
            RecordProcessingError: If the record cannot be serialized or written
        """
        if self.closed:
            raise RecordProcessingError(f"Writer for {self.path} is already closed")
        try:
            self._spool.write(json.dumps(record.fields, ensure_ascii=False))
            self._spool.write("\n")
        except (OSError, TypeError, ValueError) as e:
            raise RecordProcessingError(
                f"Failed to write record from {record.source_file} line {record.line_number}: {e}",
                record.source_file,
                record.line_number,
            ) from e
        self._field_names.update(record.fields.keys())
        self.count += 1

    def write_many(self, records: Iterable[Record]) -> None:
        for record in records:
            self.write_one(record)

    def close(self) -> Optional[str]:
        """
        Render the spooled records to the CSV file.

        Returns:
            Optional[str]: The CSV path, or None when nothing was written
        """
        if self.closed:
            return self.path if self.count else None
        self.closed = True
        self._spool.close()

        try:
            if self.count == 0:
                logger.debug(f"No records to write to {self.path}")
                return None

            headers = sorted(self._field_names)
            first_batch = True
            with open(self._spool_path, "r", encoding="utf-8") as spool:
                batch = []
                for line in spool:
                    batch.append(json.loads(line))
                    if len(batch) >= self.batch_rows:
                        self._write_batch(batch, headers, first_batch)
                        first_batch = False
                        batch = []
                if batch:
                    self._write_batch(batch, headers, first_batch)

            logger.debug(f"Wrote {self.count} records to {self.path}")
            return self.path
        finally:
            _remove_quietly(self._spool_path)

    def abort(self) -> None:
        """Discard everything written so far."""
        self.closed = True
        if not self._spool.closed:
            self._spool.close()
        _remove_quietly(self._spool_path)
        _remove_quietly(self.path)

    def _write_batch(self, batch: List[Dict[str, str]], headers: List[str], first: bool) -> None:
        df = pd.DataFrame.from_records(batch, columns=headers).fillna("")
        df.to_csv(
            self.path,
            sep=self.delimiter,
            index=False,
            header=first,
            mode="w" if first else "a",
            encoding="utf-8",
        )

    def __enter__(self) -> "IncrementalCsvWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()


class PandasCsvWriter:
    """Writes Records to delimited files."""

    def write_all(self, path: str, records: List[Record], delimiter: str = ",") -> Optional[str]:
        """
        Write a list of records in one go.

        Args:
            path: Target file (parent directories are created)
            records: Records to write; nothing is written for an empty list
            delimiter: Single-character field delimiter

        Returns:
            Optional[str]: The path written, or None when there were no records
        """
        if not records:
            logger.debug(f"No records to write to {path}")
            return None

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        headers = sorted({name for record in records for name in record.fields})
        df = pd.DataFrame.from_records([record.fields for record in records], columns=headers).fillna("")
        df.to_csv(path, sep=delimiter, index=False, encoding="utf-8")

        logger.debug(f"Wrote {len(records)} records to {path}")
        return path

    def open_incremental(self, path: str, delimiter: str = ",") -> IncrementalCsvWriter:
        """Open a writer that accepts records one at a time."""
        return IncrementalCsvWriter(path, delimiter)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
