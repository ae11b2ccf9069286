"""
Key ranges for partition scans.

A range is translated into a DynamoDB key condition and, separately, into an
exact client-side predicate. The remote condition for ``Between(after,
before)`` is inclusive of ``before`` while the range itself is half-open, so
every item a Query returns is re-checked against the predicate before it is
handed to the caller.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union


@dataclass(frozen=True)
class Prefix:
    """Keys starting with ``with_prefix``."""

    with_prefix: str


@dataclass(frozen=True)
class Between:
    """Keys with ``after <= key < before``; either bound may be omitted."""

    after: Optional[str] = None
    before: Optional[str] = None


KeyRange = Union[Prefix, Between]

PARTITION_ATTRIBUTE = "partition"
KEY_ATTRIBUTE = "key"


def query_from_range(partition: str, key_range: Optional[KeyRange] = None) -> dict[str, Any]:
    """
    Build the Query parameters selecting ``key_range`` within ``partition``.

    Args:
        partition: Partition to scan
        key_range: Optional key filter

    Returns:
        KeyConditionExpression, ExpressionAttributeNames and
        ExpressionAttributeValues for a DynamoDB Query

    Raises:
        TypeError: If key_range is not a supported range type
    """
    names = {"#p": PARTITION_ATTRIBUTE}
    values: dict[str, Any] = {":p": {"S": partition}}
    terms = ["#p = :p"]

    if key_range is None:
        pass
    elif isinstance(key_range, Prefix):
        names["#k"] = KEY_ATTRIBUTE
        values[":withPrefix"] = {"S": key_range.with_prefix}
        terms.append("begins_with(#k, :withPrefix)")
    elif isinstance(key_range, Between):
        if key_range.after or key_range.before:
            names["#k"] = KEY_ATTRIBUTE
        if key_range.after:
            values[":after"] = {"S": key_range.after}
            if key_range.before:
                values[":before"] = {"S": key_range.before}
                terms.append("#k BETWEEN :after AND :before")
            else:
                terms.append("#k >= :after")
        elif key_range.before:
            values[":before"] = {"S": key_range.before}
            terms.append("#k < :before")
    else:
        raise TypeError(f"Unsupported range: {key_range!r}")

    return {
        "KeyConditionExpression": " AND ".join(terms),
        "ExpressionAttributeNames": names,
        "ExpressionAttributeValues": values,
    }


def match_range(key_range: Optional[KeyRange] = None) -> Callable[[str], bool]:
    """Exact predicate for ``key_range``."""
    if key_range is None:
        return lambda key: True
    if isinstance(key_range, Prefix):
        return lambda key: key.startswith(key_range.with_prefix)
    if isinstance(key_range, Between):
        after, before = key_range.after, key_range.before
        if after and before:
            return lambda key: after <= key < before
        if after:
            return lambda key: after <= key
        if before:
            return lambda key: key < before
        return lambda key: True
    return lambda key: False
