"""
File Pairing
------------
Discovers the files in the two source directories and decides which files
are reconciled against each other.
"""

import os
import logging
from collections import OrderedDict
from typing import List, Dict

from csv_reconcile.models.data_models import FilePair, FileMatchingMode

logger = logging.getLogger(__name__)


def discover_files(directory: str, extension: str = ".csv") -> List[str]:
    """
    List the files directly inside a directory that have the given extension.

    Subdirectories are not searched. The extension check ignores case.

    Args:
        directory: Directory to scan
        extension: File extension including the dot

    Returns:
        List[str]: Full paths sorted lexicographically (empty if the directory is missing)
    """
    if not os.path.isdir(directory):
        logger.warning(f"Folder does not exist: {directory}")
        return []

    extension = extension.lower()
    files = [
        entry.path
        for entry in os.scandir(directory)
        if entry.is_file() and entry.name.lower().endswith(extension)
    ]
    return sorted(files)


def pair_one_to_one(left_files: List[str], right_files: List[str]) -> List[FilePair]:
    """
    Pair files that share a name, ignoring case.

    Every file from either side ends up in exactly one pair. Left files are
    emitted first in order; right files nobody claimed follow with an empty
    left path.
    """
    # Several right files can fold to the same name on case-sensitive file systems
    lookup: Dict[str, List[str]] = OrderedDict()
    for path in right_files:
        lookup.setdefault(os.path.basename(path).lower(), []).append(path)

    pairs = []
    for left_path in left_files:
        name = os.path.basename(left_path)
        candidates = lookup.get(name.lower())
        right_path = ""
        if candidates:
            right_path = candidates.pop(0)
            if not candidates:
                del lookup[name.lower()]
        pairs.append(FilePair(label=name, left_path=left_path, right_path=right_path))

    for remaining in lookup.values():
        for right_path in remaining:
            pairs.append(FilePair(label=os.path.basename(right_path), left_path="", right_path=right_path))

    return pairs


def pair_all_against_all(left_files: List[str], right_files: List[str]) -> List[FilePair]:
    """Pair every left file with every right file."""
    pairs = []
    for left_path in left_files:
        left_stem = os.path.splitext(os.path.basename(left_path))[0]
        for right_path in right_files:
            label = f"{left_stem}_vs_{os.path.basename(right_path)}"
            pairs.append(FilePair(label=label, left_path=left_path, right_path=right_path))
    return pairs


def build_pairs(
    left_dir: str,
    right_dir: str,
    mode: FileMatchingMode = FileMatchingMode.ONE_TO_ONE,
    extension: str = ".csv"
) -> List[FilePair]:
    """
    Build the list of file pairs to reconcile.

    Args:
        left_dir: Left source directory
        right_dir: Right source directory
        mode: One-to-one by file name, or every left file against every right file
        extension: Extension of the files to consider

    Returns:
        List[FilePair]: Pairs in deterministic order; no pair has both paths empty
    """
    left_files = discover_files(left_dir, extension)
    right_files = discover_files(right_dir, extension)

    logger.info(f"Found {len(left_files)} files in {left_dir}")
    logger.info(f"Found {len(right_files)} files in {right_dir}")

    if mode == FileMatchingMode.ALL_AGAINST_ALL:
        pairs = pair_all_against_all(left_files, right_files)
    else:
        pairs = pair_one_to_one(left_files, right_files)

    logger.info(f"Created {len(pairs)} file pairs ({FileMatchingMode(mode).value})")
    return pairs
