"""Decoding helpers for the feed's loosely-typed JSON.

The feed does not keep its schema stable: a collection with exactly one item
is sent as a bare object instead of a one-element array. Everything that
reads a collection goes through sequence(), and every field read goes
through required() or optional(), so the expected shape of a payload is
stated where it is consumed.
"""

import json
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .exceptions import DecodeError

T = TypeVar("T")

JSONObject = Dict[str, Any]


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def sequence(value: Any, field: str) -> List[JSONObject]:
    """
    Normalize a value that may be a single object or an array of objects.

    Args:
        value: Decoded JSON value.
        field: Name of the field being normalized, used in error messages.

    Returns:
        The array itself, or a one-element list holding the object.

    Raises:
        DecodeError: If value is neither an object nor an array of objects.
    """
    if isinstance(value, list):
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                raise DecodeError(
                    f"Expected '{field}[{index}]' to be an object, got {_describe(item)}",
                    field=field,
                )
        return value
    if isinstance(value, dict):
        return [value]
    raise DecodeError(
        f"Expected '{field}' to be an object or an array of objects, got {_describe(value)}",
        field=field,
    )


def decode_document(data: bytes, field: str = "response") -> JSONObject:
    """Parse a response body into its top-level JSON object."""
    try:
        document = json.loads(data)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Invalid JSON in {field}: {e}", field=field) from e

    if not isinstance(document, dict):
        raise DecodeError(
            f"Expected {field} to be a JSON object, got {_describe(document)}", field=field
        )
    return document


def mapping(obj: JSONObject, key: str) -> JSONObject:
    """Return the required nested object obj[key]."""
    value = obj.get(key)
    if not isinstance(value, dict):
        raise DecodeError(
            f"Expected '{key}' to be an object, got {_describe(value)}", field=key
        )
    return value


def field_sequence(obj: JSONObject, key: str, required: bool = True) -> List[JSONObject]:
    """
    Normalize obj[key] with sequence().

    A missing optional key means zero items. A key that is present but
    malformed is always an error.
    """
    if key not in obj or obj[key] is None:
        if required:
            raise DecodeError(f"Missing required field '{key}'", field=key)
        return []
    return sequence(obj[key], key)


def required(obj: JSONObject, key: str, coerce: Callable[[Any], Optional[T]]) -> T:
    """Return obj[key] converted with coerce, or raise DecodeError."""
    if key not in obj:
        raise DecodeError(f"Missing required field '{key}'", field=key)
    value = coerce(obj[key])
    if value is None:
        raise DecodeError(
            f"Field '{key}' has unusable value {obj[key]!r}", field=key
        )
    return value


def optional(obj: JSONObject, key: str, coerce: Callable[[Any], Optional[T]], default: T) -> T:
    """Return obj[key] converted with coerce, or default."""
    if key not in obj:
        return default
    value = coerce(obj[key])
    return default if value is None else value
