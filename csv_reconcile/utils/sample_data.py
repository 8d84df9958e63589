"""
Sample Data Generation
----------------------
Creates pairs of CSV files with a known overlap for trying out and
load-testing a reconciliation.
"""

import os
import random
import logging
from typing import Dict, Optional

import pandas as pd

logger = logging.getLogger(__name__)

FIRST_NAMES = ["John", "Jane", "Michael", "Sarah", "David", "Emma", "Robert", "Olivia", "James", "Sophia"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Moore"]
CITIES = ["New York", "London", "Berlin", "Paris", "Toronto", "Sydney", "Madrid", "Tokyo"]


def _make_rows(ids, rng: random.Random, extra_fields: int) -> pd.DataFrame:
    rows = []
    for record_id in ids:
        row = {
            "Id": str(record_id),
            "FirstName": rng.choice(FIRST_NAMES),
            "LastName": rng.choice(LAST_NAMES),
            "City": rng.choice(CITIES),
            "Amount": f"{rng.uniform(1, 10_000):.2f}",
        }
        for i in range(extra_fields):
            row[f"Field{i + 1}"] = f"value_{record_id}_{i + 1}"
        rows.append(row)
    return pd.DataFrame(rows)


def generate_test_pair(
    left_dir: str,
    right_dir: str,
    file_name: str = "sample.csv",
    rows: int = 1000,
    overlap_pct: float = 80.0,
    extra_fields: int = 0,
    seed: Optional[int] = None
) -> Dict[str, int]:
    """
    Write one CSV file into each directory, sharing a share of their Ids.

    Both files get `rows` rows. The first overlap_pct percent of the Ids are
    common to both; the rest are unique to each side.

    Args:
        left_dir: Directory for the left file (created if missing)
        right_dir: Directory for the right file (created if missing)
        file_name: Name used for both files
        rows: Rows per file
        overlap_pct: Percentage of rows whose Id appears in both files (0-100)
        extra_fields: Number of filler columns to add
        seed: Random seed for reproducible output

    Returns:
        Dict[str, int]: Expected matched, only_left and only_right counts

    Raises:
        ValueError: If rows is negative or overlap_pct is outside 0-100
    """
    if rows < 0:
        raise ValueError("rows cannot be negative")
    if not 0 <= overlap_pct <= 100:
        raise ValueError("overlap_pct must be between 0 and 100")

    rng = random.Random(seed)
    shared = int(rows * overlap_pct / 100)
    unique = rows - shared

    shared_ids = list(range(1, shared + 1))
    left_ids = shared_ids + list(range(shared + 1, shared + unique + 1))
    right_ids = shared_ids + list(range(rows + 1, rows + unique + 1))
    rng.shuffle(left_ids)
    rng.shuffle(right_ids)

    os.makedirs(left_dir, exist_ok=True)
    os.makedirs(right_dir, exist_ok=True)

    left_path = os.path.join(left_dir, file_name)
    right_path = os.path.join(right_dir, file_name)
    _make_rows(left_ids, rng, extra_fields).to_csv(left_path, index=False)
    _make_rows(right_ids, rng, extra_fields).to_csv(right_path, index=False)

    logger.info(f"Generated {rows} rows in {left_path} and {right_path} ({shared} shared Ids)")
    return {"matched": shared, "only_left": unique, "only_right": unique}
