"""
Data Models Module
Contains the row record, configuration models and result structures.
"""

from .data_models import (
    Record,
    FileMatchingMode,
    OutputMode,
    MatchingRule,
    ReconciliationConfig,
    FilePair,
    FileComparisonResult,
    ReconciliationResult,
    PairSummary,
    GlobalSummary,
    ReconcileResponse,
)
