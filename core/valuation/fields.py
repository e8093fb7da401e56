"""
First-match field extraction over opaque listing JSON.

The listing API does not guarantee a single shape for any value, so each
value is read through an ordered list of accessors; the first one that
yields a non-None result wins.
"""

import re
from typing import Any, Callable, Iterable, Optional, Sequence

Accessor = Callable[[Any], Any]


def dig(*path: str) -> Accessor:
    """
    Build an accessor that walks nested dicts along ``path``.

    Missing keys or non-dict intermediates yield None rather than raising.
    """

    def _accessor(source: Any) -> Any:
        current = source
        for key in path:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
            if current is None:
                return None
        return current

    _accessor.__name__ = "dig_" + "_".join(path)
    return _accessor


def first_match(source: Any, accessors: Iterable[Accessor]) -> Any:
    """Return the first non-None accessor result, or None."""
    for accessor in accessors:
        value = accessor(source)
        if value is not None:
            return value
    return None


_NUMERIC_NOISE = re.compile(r"[,\s₦$£€]")


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a JSON value to float.

    Accepts ints, floats and numeric strings with thousands separators or
    currency symbols. Booleans, NaN and anything unparseable become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if number != number:  # NaN
        return None
    return number


def first_number(source: Any, accessors: Sequence[Accessor]) -> Optional[float]:
    """Return the first accessor result that coerces to a number."""
    return first_match(source, [_numeric(a) for a in accessors])


def first_list(
    source: Any,
    accessors: Sequence[Accessor],
    min_length: int = 1,
) -> Optional[list]:
    """Return the first accessor result that is a list with ``min_length`` items."""
    for accessor in accessors:
        value = accessor(source)
        if isinstance(value, list) and len(value) >= min_length:
            return value
    return None


def _numeric(accessor: Accessor) -> Accessor:
    def _accessor(source: Any) -> Optional[float]:
        return to_number(accessor(source))

    return _accessor
