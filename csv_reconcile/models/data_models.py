"""
Data Models
-----------
This module contains the records, configuration and result structures used by
the reconciliation engine.

Configuration and results are Pydantic models so they can be loaded from JSON
config files and returned from the API. Rows are plain frozen dataclasses since
millions of them flow through the join loops.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator

from csv_reconcile.errors import ConfigurationError


@dataclass(frozen=True)
class Record:
    """
    A single row read from a delimited file.

    Attributes:
        fields: Column name to value mapping (column names unique, case preserved)
        source_file: Name of the file the row came from
        line_number: 1-based physical line of the row (the header is line 1)
    """
    fields: Dict[str, str] = field(default_factory=dict)
    source_file: str = ""
    line_number: int = 1

    def get_field(self, name: str) -> str:
        """Return the value of a column, or an empty string when it is absent."""
        return self.fields.get(name, "")


class FileMatchingMode(str, Enum):
    """How files in the left directory are associated with files in the right one."""
    ONE_TO_ONE = "OneToOne"
    ALL_AGAINST_ALL = "AllAgainstAll"

    @classmethod
    def _missing_(cls, value: Any) -> Optional["FileMatchingMode"]:
        # Accept "onetoone", "ALLAGAINSTALL", "all-against-all" from config files and the CLI
        if isinstance(value, str):
            wanted = value.replace("-", "").replace("_", "").lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return None


class OutputMode(str, Enum):
    """Where the engine sends classified records for pairs that fit in memory."""
    IN_MEMORY = "in-memory"
    STREAMING = "streaming"


class MatchingRule(BaseModel):
    """
    Fields used to build the matching key, and how their values are normalized.
    """
    model_config = ConfigDict(populate_by_name=True)

    matching_fields: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("matching_fields", "matchingFields", "fields"),
        serialization_alias="matchingFields",
    )
    case_sensitive: bool = Field(
        default=False,
        validation_alias=AliasChoices("case_sensitive", "caseSensitive"),
        serialization_alias="caseSensitive",
    )
    trim: bool = True

    def validation_errors(self) -> List[str]:
        """Return one message per violated rule invariant."""
        errors = []
        if not self.matching_fields:
            errors.append("At least one matching field must be specified.")
        elif any(f is None or not str(f).strip() for f in self.matching_fields):
            errors.append("Matching fields cannot be empty or whitespace.")
        return errors

    def validate_rule(self) -> None:
        """
        Raise if the rule cannot be used for matching.

        Raises:
            ConfigurationError: If the field list is empty or has blank entries
        """
        errors = self.validation_errors()
        if errors:
            raise ConfigurationError(errors)


class ReconciliationConfig(BaseModel):
    """
    All options for one reconciliation run.

    Field names are snake_case; JSON config files and API requests may use the
    camelCase names (and the folderA/folderB names of older config files).
    """
    model_config = ConfigDict(populate_by_name=True)

    left_dir: str = Field(
        default="",
        validation_alias=AliasChoices("left_dir", "leftDir", "folderA"),
        serialization_alias="leftDir",
    )
    right_dir: str = Field(
        default="",
        validation_alias=AliasChoices("right_dir", "rightDir", "folderB"),
        serialization_alias="rightDir",
    )
    output_dir: str = Field(
        default="Output",
        validation_alias=AliasChoices("output_dir", "outputDir", "outputFolder"),
        serialization_alias="outputDir",
    )
    matching_rule: MatchingRule = Field(
        default_factory=MatchingRule,
        validation_alias=AliasChoices("matching_rule", "matchingRule"),
        serialization_alias="matchingRule",
    )
    pairing_mode: FileMatchingMode = Field(
        default=FileMatchingMode.ONE_TO_ONE,
        validation_alias=AliasChoices("pairing_mode", "pairingMode", "matchingMode"),
        serialization_alias="pairingMode",
    )
    concurrency: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        validation_alias=AliasChoices("concurrency", "degreeOfParallelism"),
    )
    delimiter: str = ","
    has_header_row: bool = Field(
        default=True,
        validation_alias=AliasChoices("has_header_row", "hasHeaderRow"),
        serialization_alias="hasHeaderRow",
    )
    memory_ceiling_mb: int = Field(
        default=0,
        validation_alias=AliasChoices("memory_ceiling_mb", "memoryCeilingMB", "maxMemoryUsageMB"),
        serialization_alias="memoryCeilingMB",
    )
    chunk_size_mb: int = Field(
        default=1024,
        validation_alias=AliasChoices("chunk_size_mb", "chunkSizeMB"),
        serialization_alias="chunkSizeMB",
    )
    streaming_output_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("streaming_output_enabled", "streamingOutputEnabled", "enableStreamingOutput"),
        serialization_alias="streamingOutputEnabled",
    )
    retain_records_in_memory: bool = Field(
        default=False,
        validation_alias=AliasChoices("retain_records_in_memory", "retainRecordsInMemory", "enableRecordStorage"),
        serialization_alias="retainRecordsInMemory",
    )
    file_extension: str = Field(
        default=".csv",
        validation_alias=AliasChoices("file_extension", "fileExtension"),
        serialization_alias="fileExtension",
    )
    temp_dir: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("temp_dir", "tempDir"),
        serialization_alias="tempDir",
    )

    @field_validator("pairing_mode", mode="before")
    @classmethod
    def parse_pairing_mode(cls, v: Any) -> Any:
        """Accept pairing mode names in any case."""
        if isinstance(v, str):
            try:
                return FileMatchingMode(v)
            except ValueError:
                return v
        return v

    @field_validator("file_extension")
    @classmethod
    def extension_has_dot(cls, v: str) -> str:
        """Normalize 'csv' to '.csv'."""
        if v and not v.startswith("."):
            return f".{v}"
        return v

    @property
    def effective_concurrency(self) -> int:
        """Worker count to use; 0 means one worker per processor."""
        if self.concurrency == 0:
            return os.cpu_count() or 1
        return self.concurrency

    @property
    def output_mode(self) -> OutputMode:
        return OutputMode.STREAMING if self.streaming_output_enabled else OutputMode.IN_MEMORY

    def validation_errors(self, check_paths: bool = True) -> List[str]:
        """
        Collect every configuration problem instead of stopping at the first one.

        Args:
            check_paths: Whether to check that the source directories exist

        Returns:
            List[str]: One message per violated invariant (empty when valid)
        """
        errors = []

        for name, path in (("Left directory", self.left_dir), ("Right directory", self.right_dir)):
            if not path or not path.strip():
                errors.append(f"{name} path is required.")
            elif check_paths and not os.path.isdir(path):
                errors.append(f"{name} does not exist: {path}")

        errors.extend(self.matching_rule.validation_errors())

        if self.chunk_size_mb <= 0:
            errors.append("Chunk size must be greater than 0 MB.")
        if self.memory_ceiling_mb < 0:
            errors.append("Memory ceiling cannot be negative.")
        if self.concurrency < 0:
            errors.append("Concurrency cannot be negative.")
        if len(self.delimiter) != 1:
            errors.append(f"Delimiter must be a single character, got {self.delimiter!r}.")

        return errors

    def validate_settings(self, check_paths: bool = True) -> None:
        """
        Raise if the configuration cannot be used.

        Raises:
            ConfigurationError: Carrying every validation message
        """
        errors = self.validation_errors(check_paths=check_paths)
        if errors:
            raise ConfigurationError(errors)


class FilePair(BaseModel):
    """Two files to reconcile. An empty path means the file is missing on that side."""
    model_config = ConfigDict(frozen=True)

    label: str
    left_path: str = ""
    right_path: str = ""


class FileComparisonResult(BaseModel):
    """
    Outcome of reconciling one file pair.

    Record lists are filled only when records are kept in memory; in streaming
    modes the *_file_path fields point into temp_dir instead. Those paths are
    cleared once output generation has copied and deleted the temp files.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    left_path: str = ""
    right_path: str = ""
    exists_left: bool = False
    exists_right: bool = False
    total_left: int = 0
    total_right: int = 0
    matched_count: int = 0
    only_left_count: int = 0
    only_right_count: int = 0
    duplicate_left_count: int = 0
    matched_records: List[Record] = Field(default_factory=list)
    only_left_records: List[Record] = Field(default_factory=list)
    only_right_records: List[Record] = Field(default_factory=list)
    matched_file_path: Optional[str] = None
    only_left_file_path: Optional[str] = None
    only_right_file_path: Optional[str] = None
    temp_dir: Optional[str] = None
    join_mode: Optional[str] = None
    processing_duration: float = 0.0
    errors: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def is_streamed(self) -> bool:
        return any((self.matched_file_path, self.only_left_file_path, self.only_right_file_path))


class ReconciliationResult(BaseModel):
    """
    Results of a whole run. Every total is derived from pair_results.
    """
    pair_results: List[FileComparisonResult] = Field(default_factory=list)
    total_duration: float = 0.0

    @property
    def total_left(self) -> int:
        return sum(r.total_left for r in self.pair_results)

    @property
    def total_right(self) -> int:
        return sum(r.total_right for r in self.pair_results)

    @property
    def total_matched(self) -> int:
        return sum(r.matched_count for r in self.pair_results)

    @property
    def total_only_left(self) -> int:
        return sum(r.only_left_count for r in self.pair_results)

    @property
    def total_only_right(self) -> int:
        return sum(r.only_right_count for r in self.pair_results)

    @property
    def successful_count(self) -> int:
        return sum(1 for r in self.pair_results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.pair_results if not r.success)

    @property
    def missing_in_left(self) -> List[str]:
        return [r.label for r in self.pair_results if not r.exists_left]

    @property
    def missing_in_right(self) -> List[str]:
        return [r.label for r in self.pair_results if not r.exists_right]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PairSummary(_CamelModel):
    """Contents of a pair's reconcile-summary.json."""
    file_name: str = Field(alias="fileName")
    exists_left: bool = Field(alias="existsLeft")
    exists_right: bool = Field(alias="existsRight")
    total_left: int = Field(alias="totalLeft")
    total_right: int = Field(alias="totalRight")
    matched: int
    only_left: int = Field(alias="onlyLeft")
    only_right: int = Field(alias="onlyRight")
    duplicate_left: int = Field(default=0, alias="duplicateLeft")
    join_mode: Optional[str] = Field(default=None, alias="joinMode")
    processing_time_seconds: float = Field(alias="processingTimeSeconds")
    success: bool
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: FileComparisonResult) -> "PairSummary":
        return cls(
            file_name=result.label,
            exists_left=result.exists_left,
            exists_right=result.exists_right,
            total_left=result.total_left,
            total_right=result.total_right,
            matched=result.matched_count,
            only_left=result.only_left_count,
            only_right=result.only_right_count,
            duplicate_left=result.duplicate_left_count,
            join_mode=result.join_mode,
            processing_time_seconds=round(result.processing_duration, 3),
            success=result.success,
            errors=list(result.errors),
        )


class FileBreakdown(_CamelModel):
    """One entry of the fileBreakdown list in global-summary.json."""
    file_name: str = Field(alias="fileName")
    exists_left: bool = Field(alias="existsLeft")
    exists_right: bool = Field(alias="existsRight")
    total_left: int = Field(alias="totalLeft")
    total_right: int = Field(alias="totalRight")
    matched: int
    only_left: int = Field(alias="onlyLeft")
    only_right: int = Field(alias="onlyRight")
    processing_time_seconds: float = Field(alias="processingTimeSeconds")
    success: bool
    error_count: int = Field(alias="errorCount")


class RunTotals(_CamelModel):
    total_files_processed: int = Field(alias="totalFilesProcessed")
    successful_files: int = Field(alias="successfulFiles")
    failed_files: int = Field(alias="failedFiles")
    total_records_left: int = Field(alias="totalRecordsLeft")
    total_records_right: int = Field(alias="totalRecordsRight")
    total_matched: int = Field(alias="totalMatched")
    total_only_left: int = Field(alias="totalOnlyLeft")
    total_only_right: int = Field(alias="totalOnlyRight")


class MissingFiles(_CamelModel):
    missing_in_left: List[str] = Field(default_factory=list, alias="missingInLeft")
    missing_in_right: List[str] = Field(default_factory=list, alias="missingInRight")


class GlobalSummary(_CamelModel):
    """Contents of global-summary.json."""
    timestamp: datetime
    total_processing_time_seconds: float = Field(alias="totalProcessingTimeSeconds")
    summary: RunTotals
    missing_files: MissingFiles = Field(alias="missingFiles")
    file_breakdown: List[FileBreakdown] = Field(default_factory=list, alias="fileBreakdown")

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "GlobalSummary":
        return cls(
            timestamp=datetime.now(timezone.utc),
            total_processing_time_seconds=round(result.total_duration, 3),
            summary=RunTotals(
                total_files_processed=len(result.pair_results),
                successful_files=result.successful_count,
                failed_files=result.failed_count,
                total_records_left=result.total_left,
                total_records_right=result.total_right,
                total_matched=result.total_matched,
                total_only_left=result.total_only_left,
                total_only_right=result.total_only_right,
            ),
            missing_files=MissingFiles(
                missing_in_left=result.missing_in_left,
                missing_in_right=result.missing_in_right,
            ),
            file_breakdown=[
                FileBreakdown(
                    file_name=r.label,
                    exists_left=r.exists_left,
                    exists_right=r.exists_right,
                    total_left=r.total_left,
                    total_right=r.total_right,
                    matched=r.matched_count,
                    only_left=r.only_left_count,
                    only_right=r.only_right_count,
                    processing_time_seconds=round(r.processing_duration, 3),
                    success=r.success,
                    error_count=len(r.errors),
                )
                for r in result.pair_results
            ],
        )


class ReconcileResponse(_CamelModel):
    """Response model for the reconcile API endpoint."""
    message: str
    output_dir: str = Field(alias="outputDir")
    summary: GlobalSummary
    pairs: List[PairSummary] = Field(default_factory=list)
