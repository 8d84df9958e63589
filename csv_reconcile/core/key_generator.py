"""
Key Generation
--------------
Builds the composite matching key of a record from a matching rule.

A single-field rule uses the normalized value as the key. Multi-field rules
join the normalized values with KEY_DELIMITER. Values are not escaped, so a
value containing the delimiter can collide with a different combination of
values.
"""

from typing import NamedTuple, Optional

from csv_reconcile.errors import ConfigurationError
from csv_reconcile.models.data_models import Record, MatchingRule
from csv_reconcile.utils.text_processing import normalize_value

KEY_DELIMITER = "|"


class KeyResult(NamedTuple):
    """Outcome of keying one record: either a key or an error message."""
    key: Optional[str]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def generate_key(record: Record, rule: MatchingRule) -> str:
    """
    Generate the matching key for a record.

    Args:
        record: The record to key
        rule: Fields and normalization options

    Returns:
        str: The normalized key

    Raises:
        ConfigurationError: If the rule has no matching fields
    """
    if not rule.matching_fields:
        raise ConfigurationError(["At least one matching field must be specified."])

    values = [
        normalize_value(record.get_field(name), rule.case_sensitive, rule.trim)
        for name in rule.matching_fields
    ]

    if len(values) == 1:
        return values[0]
    return KEY_DELIMITER.join(values)


def try_generate_key(record: Record, rule: MatchingRule) -> KeyResult:
    """
    Generate a key without raising for bad row data.

    Field values that are not strings (which a reader should never produce)
    yield a failed result naming the record, so the caller can record the
    error and move on to the next row.

    Args:
        record: The record to key
        rule: Fields and normalization options

    Returns:
        KeyResult: The key, or the reason it could not be computed
    """
    for name in rule.matching_fields:
        value = record.fields.get(name, "")
        if not isinstance(value, str):
            return KeyResult(
                None,
                f"Cannot build key for {record.source_file} line {record.line_number}: "
                f"field '{name}' has non-text value {value!r}",
            )
    return KeyResult(generate_key(record, rule))
