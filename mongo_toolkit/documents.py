# documents.py
"""
Document values passed to and returned from the driver.

A document is an ordered mapping of string keys to values; plain dicts
keep insertion order, so any dict with string keys qualifies. Filters,
updates and replacements are documents too, e.g.

    {"ja": "東京都"}
    {"$set": {"email": "newemail@example.com"}}
"""

import datetime
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Union

from bson import Decimal128, MaxKey, MinKey, ObjectId, Regex, Timestamp
from bson import json_util

from .errors import DocumentError

DocumentValue = Union[
    str,
    int,
    float,
    bool,
    None,
    "Document",
    List["DocumentValue"],
    ObjectId,
    datetime.datetime,
]
Document = Dict[str, DocumentValue]

SCALAR_TYPES = (
    str,
    int,
    float,
    bool,
    type(None),
    bytes,
    datetime.datetime,
    uuid.UUID,
    ObjectId,
    Decimal128,
    Timestamp,
    Regex,
    MinKey,
    MaxKey,
)


def key_exists_filter(key: str, exists: bool=True) -> Document:
    """Filter matching documents where `key` is present (or absent)."""
    return {key: {"$exists": exists}}


def id_filter(document_id: Any) -> Document:
    """Filter matching the document whose _id is `document_id`."""
    return {"_id": document_id}


def ensure_document(value: Any, path: str="") -> Mapping[str, Any]:
    """
    Check that `value` is a document all the way down.

    Args:
        value (Any): The candidate document.
        path (str): Dotted location used in error messages.

    Returns:
        Mapping[str, Any]: `value`, unchanged.

    Raises:
        DocumentError: If `value` is not a mapping, has a non-string key,
                       or holds a value that cannot be stored.
    """
    if not isinstance(value, Mapping):
        raise DocumentError(
            f"Expected a document at '{path or '<root>'}', got {type(value).__name__}."
        )
    for key, item in value.items():
        if not isinstance(key, str):
            raise DocumentError(
                f"Document keys must be strings, got {key!r} at '{path or '<root>'}'."
            )
        _ensure_value(item, f"{path}.{key}" if path else key)
    return value


def _ensure_value(value: Any, path: str):
    if isinstance(value, Mapping):
        ensure_document(value, path)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _ensure_value(item, f"{path}.{index}")
    elif not isinstance(value, SCALAR_TYPES):
        raise DocumentError(
            f"Unsupported value of type {type(value).__name__} at '{path}'."
        )


def parse_document(text: str) -> Document:
    """
    Parse MongoDB Extended JSON text into a document.

    `{"_id": {"$oid": "..."}}` and other extended forms are decoded to
    their BSON types.

    Raises:
        DocumentError: If the text is not valid JSON or is not an object.
    """
    try:
        parsed = json_util.loads(text)
    except (ValueError, TypeError) as e:
        raise DocumentError(f"Invalid JSON document: {e}") from e
    if not isinstance(parsed, dict):
        raise DocumentError(
            f"Expected a JSON object, got {type(parsed).__name__}."
        )
    return parsed


def dump_documents(documents: Iterable[Mapping[str, Any]], indent: int=2) -> str:
    """Render documents as a relaxed Extended JSON array."""
    return json_util.dumps(list(documents), indent=indent, ensure_ascii=False)
