"""
Shared pytest fixtures for the reconciliation tests.
"""

import os
from typing import List, Dict, Optional

import pytest

from csv_reconcile.models.data_models import MatchingRule, ReconciliationConfig


def write_csv(path, rows: List[Dict[str, str]], header: Optional[List[str]] = None, delimiter: str = ",") -> str:
    """Write rows as a simple delimited file and return its path."""
    path = str(path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if header is None:
        header = list(rows[0].keys()) if rows else []
    lines = [delimiter.join(header)]
    for row in rows:
        lines.append(delimiter.join(row.get(name, "") for name in header))
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return path


def id_rows(*ids, **extra) -> List[Dict[str, str]]:
    """Rows with an Id column plus constant extra columns."""
    return [dict({"Id": str(i)}, **extra) for i in ids]


@pytest.fixture
def dirs(tmp_path):
    left = tmp_path / "left"
    right = tmp_path / "right"
    left.mkdir()
    right.mkdir()
    return left, right


@pytest.fixture
def make_config(tmp_path, dirs):
    """Factory for a valid config over the left/right fixture directories."""
    left, right = dirs

    def _make(fields=("Id",), case_sensitive=False, trim=True, **kwargs) -> ReconciliationConfig:
        values = {
            "left_dir": str(left),
            "right_dir": str(right),
            "output_dir": str(tmp_path / "output"),
            "temp_dir": str(tmp_path / "work"),
            "concurrency": 2,
            "matching_rule": MatchingRule(
                matching_fields=list(fields),
                case_sensitive=case_sensitive,
                trim=trim,
            ),
        }
        values.update(kwargs)
        return ReconciliationConfig(**values)

    return _make
