"""
Mapping between document store records and DynamoDB items.

Items use DynamoDB's tagged attribute encoding, e.g. ``{"S": "text"}`` or
``{"N": "1"}``. Documents are stored as their JSON text in a single string
attribute.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel

from .ranges import KEY_ATTRIBUTE, PARTITION_ATTRIBUTE

AttributeValue = dict[str, Any]
Item = dict[str, AttributeValue]


class Record(BaseModel):
    """A stored document with its identity and concurrency metadata."""

    partition: str
    key: str
    revision: Optional[str] = None
    document: Any = None
    seq: int = 0
    created: Optional[str] = None
    updated: Optional[str] = None


def timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def key_item(partition: str, key: str) -> Item:
    return {
        PARTITION_ATTRIBUTE: {"S": partition},
        KEY_ATTRIBUTE: {"S": key},
    }


def serialize_document(document: Any) -> AttributeValue:
    return {"S": json.dumps(document)}


def new_item(partition: str, key: str, revision: str, document: Any) -> Item:
    """Item for a freshly added record (seq 0)."""
    now = timestamp()
    return {
        **key_item(partition, key),
        "revision": {"S": revision},
        "created": {"S": now},
        "updated": {"S": now},
        "seq": {"N": "0"},
        "document": serialize_document(document),
    }


def _string(item: Item, name: str) -> Optional[str]:
    value = item.get(name) or {}
    result: Optional[str] = value.get("S")
    return result


def item_to_record(item: Item, partition: Optional[str] = None, key: Optional[str] = None) -> Record:
    """
    Decode a DynamoDB item into a Record.

    Args:
        item: Item in tagged attribute encoding
        partition: Partition to use when the item lacks one
        key: Key to use when the item lacks one

    Returns:
        Decoded record; a missing document decodes as an empty dict
    """
    seq = (item.get("seq") or {}).get("N")
    return Record(
        partition=_string(item, PARTITION_ATTRIBUTE) or partition or "",
        key=_string(item, KEY_ATTRIBUTE) or key or "",
        revision=_string(item, "revision"),
        document=json.loads(_string(item, "document") or "{}"),
        seq=int(seq) if seq is not None else 0,
        created=_string(item, "created"),
        updated=_string(item, "updated"),
    )
