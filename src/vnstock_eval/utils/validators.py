"""Validation utilities and parameter classes."""

import math
import operator
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{2,10}$")

DEFAULT_SIZE = 270
MIN_SIZE = 30
MAX_SIZE = 1000


@dataclass(frozen=True)
class FetchParams:
    """Immutable fetch parameters. Used for cache key + fetch."""

    symbol: str
    size: int = DEFAULT_SIZE

    def __post_init__(self) -> None:
        # Normalize symbol: uppercase, strip whitespace
        symbol = self.symbol.upper().strip()
        if not SYMBOL_PATTERN.match(symbol):
            raise ValueError(f"Invalid symbol '{self.symbol}'. Expected 2-10 letters or digits")

        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise ValueError(f"Invalid size '{self.size}'. Must be an integer")
        if not MIN_SIZE <= self.size <= MAX_SIZE:
            raise ValueError(f"Invalid size {self.size}. Must be between {MIN_SIZE} and {MAX_SIZE}")

        object.__setattr__(self, "symbol", symbol)

    def to_uri(self) -> str:
        """Canonical URI for caching."""
        return f"prices://{self.symbol}/{self.size}"

    def to_query(self) -> dict[str, Any]:
        """Query parameters for the VNDirect stock_prices endpoint."""
        return {
            "sort": "date:desc",
            "q": f"code:{self.symbol}",
            "size": self.size,
        }


def safe_float(value: Any) -> float | None:
    """Convert to a finite float or return None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(result):
        return None
    return result


def parse_ratio_set(raw: Iterable[Mapping[str, Any]] | Mapping[str, Any] | None) -> dict[str, float]:
    """
    Build a ratio-code -> value mapping, dropping unusable entries.

    Accepts either the VNDirect list shape ([{"ratioCode": ..., "value": ...}])
    or a plain mapping. Null, NaN and non-numeric values are absent from the
    result, never zero.

    Raises:
        TypeError: If raw is not a list of records or a mapping
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        items = raw.items()
    elif isinstance(raw, (list, tuple)):
        items = []
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise TypeError(f"Ratio entries must be mappings, got {type(entry).__name__}")
            items.append((entry.get("ratioCode"), entry.get("value")))
    else:
        raise TypeError(f"Ratios must be a list or mapping, got {type(raw).__name__}")

    ratios: dict[str, float] = {}
    for code, value in items:
        if not isinstance(code, str) or not code.strip():
            continue
        number = safe_float(value)
        if number is not None:
            ratios[code.strip().upper()] = number
    return ratios


def check_rule(
    value: float | None,
    threshold: float,
    comparator: Callable[[float, float], bool] = operator.gt,
) -> bool | None:
    """
    Check a rule with nullable boolean semantics.

    If value is None, returns None (not False).

    Args:
        value: The value to check (may be None)
        threshold: The threshold to compare against
        comparator: Comparison function (default: operator.gt)

    Returns:
        True/False if value is not None, None otherwise
    """
    if value is None:
        return None
    return comparator(value, threshold)
