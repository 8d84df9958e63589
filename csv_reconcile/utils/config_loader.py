"""
Configuration Loading
---------------------
Environment defaults and matching-rule config files.

Config files are JSON, for example:

    {
        "matchingFields": ["FirstName", "LastName"],
        "caseSensitive": false,
        "trim": true,
        "matchingMode": "OneToOne",
        "chunkSizeMB": 512
    }

Only the matching rule keys are required; the other keys override the
corresponding run settings.
"""

import os
import json
import logging
from typing import Dict, Any, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from csv_reconcile.errors import ConfigurationError
from csv_reconcile.models.data_models import MatchingRule, ReconciliationConfig

logger = logging.getLogger(__name__)

# Load environment variables from a .env file if present
load_dotenv()

# Run settings a matching config file may carry besides the rule itself
RUN_SETTING_KEYS = (
    "matchingMode",
    "pairingMode",
    "maxMemoryUsageMB",
    "memoryCeilingMB",
    "chunkSizeMB",
    "enableStreamingOutput",
    "streamingOutputEnabled",
    "enableRecordStorage",
    "retainRecordsInMemory",
    "fileExtension",
)


def env_defaults() -> Dict[str, Any]:
    """Settings taken from RECONCILE_* environment variables."""
    return {
        "output_dir": os.environ.get("RECONCILE_OUTPUT_DIR", "Output"),
        "log_dir": os.environ.get("RECONCILE_LOG_DIR") or None,
        "log_level": os.environ.get("RECONCILE_LOG_LEVEL", "INFO").upper(),
        "temp_dir": os.environ.get("RECONCILE_TEMP_DIR") or None,
    }


def read_config_file(path: str) -> Dict[str, Any]:
    """
    Read a JSON config file.

    Raises:
        ConfigurationError: If the file is missing or is not a JSON object
    """
    if not os.path.isfile(path):
        raise ConfigurationError([f"Config file not found: {path}"])

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError([f"Config file {path} is not valid JSON: {e}"]) from e

    if not isinstance(data, dict):
        raise ConfigurationError([f"Config file {path} must contain a JSON object"])
    return data


def load_matching_config(path: str) -> MatchingRule:
    """
    Load and validate the matching rule of a config file.

    Args:
        path: JSON config file

    Returns:
        MatchingRule: The validated rule

    Raises:
        ConfigurationError: If the file is missing, malformed or the rule is invalid
    """
    data = read_config_file(path)
    try:
        rule = MatchingRule.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError([f"Invalid matching rule in {path}: {err['msg']}" for err in e.errors()]) from e

    rule.validate_rule()
    logger.info(f"Loaded matching rule from {path}: fields={rule.matching_fields}")
    return rule


def build_config(
    left_dir: str,
    right_dir: str,
    config_path: str,
    overrides: Optional[Dict[str, Any]] = None
) -> ReconciliationConfig:
    """
    Combine environment defaults, a config file and explicit overrides.

    Later sources win: environment, then config file run settings, then
    overrides (typically command line options).

    Raises:
        ConfigurationError: If the config file or the combined values are invalid
    """
    file_data = read_config_file(config_path)
    rule = load_matching_config(config_path)
    defaults = env_defaults()

    values: Dict[str, Any] = {
        "left_dir": left_dir,
        "right_dir": right_dir,
        "output_dir": defaults["output_dir"],
        "temp_dir": defaults["temp_dir"],
        "matching_rule": rule,
    }
    for key in RUN_SETTING_KEYS:
        if key in file_data:
            values[key] = file_data[key]
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        return ReconciliationConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError([f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]) from e
