"""Best-effort conversion of loosely-typed feed values.

The feed encodes most scalars as strings ("43.65", "true", "1700000000000")
but not consistently. Each helper returns the converted value, or None when
the input cannot be interpreted as the requested type.
"""

from typing import Any, Optional

_TRUE_STRINGS = {"1", "true", "yes"}
_FALSE_STRINGS = {"0", "false", "no"}


def _is_number(value: Any) -> bool:
    # bool is a subclass of int; a JSON true is never a number here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_string(value: Any) -> Optional[str]:
    """Return value as a string, or None."""
    if isinstance(value, str):
        return value
    if _is_number(value):
        return str(value)
    return None


def to_float(value: Any) -> Optional[float]:
    """Return value as a float, or None."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def to_int(value: Any) -> Optional[int]:
    """Return value as an int, or None.

    Floats and numeric strings are accepted only when they are integral,
    so "3.0" converts but "3.5" does not.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        number = to_float(text)
        if number is not None and number.is_integer():
            return int(number)
    return None


def to_bool(value: Any) -> Optional[bool]:
    """Return value as a bool, or None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None
