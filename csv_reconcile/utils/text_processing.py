"""
Text Processing Utilities
------------------------
This module contains the value normalization applied to matching fields
before they are combined into a key.
"""

from typing import Any


def normalize_value(value: Any, case_sensitive: bool = False, trim: bool = True) -> str:
    """
    Normalize a single field value for key comparison.

    Args:
        value: The raw field value (None is treated as an empty string)
        case_sensitive: Keep the original case when True
        trim: Strip leading and trailing whitespace when True

    Returns:
        str: The normalized value
    """
    if value is None:
        return ""

    text = str(value)

    if trim:
        text = text.strip()

    # str.lower() does not depend on the process locale
    if not case_sensitive:
        text = text.lower()

    return text
