"""
Utilities Module
Contains CSV I/O, value normalization, console display, logging and configuration helpers.
"""

from .text_processing import normalize_value
from .cancellation import CancellationToken
from .csv_io import PandasCsvReader, PandasCsvWriter, IncrementalCsvWriter, normalize_headers
from .console import ConsoleSink
from .logging_config import configure_logging
