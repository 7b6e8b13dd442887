"""
Validation helpers shared by the API handlers.

Form values arrive either as strings (multipart) or as decoded JSON values,
so every helper accepts both: "9.99" and 9.99 are the same price, "2" and 2
the same quantity.
"""

import math
from typing import Any, Mapping, Optional

from ..errors import MalformedRequest
from ..http.request import MAX_INTEGER, parse_decimal


def require_text(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise MalformedRequest(f"{name} is required")
    return value.strip()


def optional_text(data: Mapping[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedRequest(f"{name} must be a string")
    return value.strip() or None


def require_price(data: Mapping[str, Any], name: str = "price") -> float:
    value = data.get(name)
    if isinstance(value, bool) or value is None:
        raise MalformedRequest(f"{name} is required")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise MalformedRequest(f"Invalid {name}: {value!r}")
    if not math.isfinite(price) or price < 0:
        raise MalformedRequest(f"Invalid {name}: {value!r}")
    return price


def require_int(data: Mapping[str, Any], name: str, minimum: int = 1) -> int:
    return _to_int(data.get(name), name, minimum)


def optional_int(data: Mapping[str, Any], name: str, default: int, minimum: int = 1) -> int:
    value = data.get(name)
    if value is None:
        return default
    return _to_int(value, name, minimum)


def parse_limit(raw: Optional[str]) -> Optional[int]:
    """`?limit=N` must be a positive integer when present."""
    if raw is None or raw == "":
        return None
    return _to_int(raw, "limit", 1)


def _to_int(value: Any, name: str, minimum: int) -> int:
    if value is None:
        raise MalformedRequest(f"{name} is required")
    if isinstance(value, bool):
        raise MalformedRequest(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        number = value if value <= MAX_INTEGER else None
    elif isinstance(value, str):
        number = parse_decimal(value.strip())
    else:
        number = None
    if number is None or number < minimum:
        raise MalformedRequest(f"Invalid {name}: {value!r}")
    return number
