"""
Core Module
Contains key generation, file pairing, the join strategies and run orchestration.
"""

from .key_generator import generate_key, try_generate_key, KeyResult, KEY_DELIMITER
from .pairing import build_pairs, discover_files
from .strategies import JoinMode, InMemoryJoin, StreamingJoin, ChunkedJoin, merge_records, estimate_record_size
from .engine import ReconciliationEngine, select_join_mode
from .dispatcher import process_all, process_all_async
from .aggregator import aggregate_results, log_summary
from .output import OutputGenerator
from .reconciliation import reconcile_directories, reconcile_directories_async, run_and_report
