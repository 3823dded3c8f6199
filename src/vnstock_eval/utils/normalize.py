"""Price unit normalization and canonical serialization.

VNDirect returns prices in two scales depending on the endpoint and the
record: absolute VND (35000) or thousands of VND (35.0). Every price must
pass through these helpers before it is compared or used in arithmetic.

The normalization contract:
1. Detection is applied per record (one bar, one recommendation field
   group), never globally across a response.
2. Any value >= 10,000 marks the whole group as native VND.
3. All values < 1,000 mark the group as thousands (multiply by 1,000).
4. Otherwise the group mean decides: mean > 5,000 means native VND.
5. Non-positive and non-finite values are ignored for detection and are
   returned as None.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from enum import Enum
from typing import Any

NATIVE_MIN = 10_000
THOUSANDS_MAX = 1_000
AMBIGUOUS_MEAN_CUTOFF = 5_000
THOUSANDS_MULTIPLIER = 1_000


class PriceUnit(str, Enum):
    """Scale a group of prices arrived in."""

    NATIVE = "native"
    THOUSANDS = "thousands"


def _valid_price(value: Any) -> float | None:
    """Return value as float if it is a finite positive number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result) or result <= 0:
        return None
    return result


def detect_price_unit(values: Iterable[Any]) -> PriceUnit | None:
    """
    Classify a group of same-kind prices as native VND or thousands.

    Args:
        values: Prices belonging to one record (e.g. OHLC of one bar)

    Returns:
        PriceUnit, or None if the group holds no usable price
    """
    prices = [p for p in (_valid_price(v) for v in values) if p is not None]
    if not prices:
        return None

    if any(p >= NATIVE_MIN for p in prices):
        return PriceUnit.NATIVE
    if all(p < THOUSANDS_MAX for p in prices):
        return PriceUnit.THOUSANDS

    mean = sum(prices) / len(prices)
    return PriceUnit.NATIVE if mean > AMBIGUOUS_MEAN_CUTOFF else PriceUnit.THOUSANDS


def normalize_prices(values: Iterable[Any]) -> list[float | None]:
    """
    Convert a group of prices to native VND using the group's own unit.

    Args:
        values: Prices belonging to one record

    Returns:
        Prices in VND, None where the input was not a usable price
    """
    raw = list(values)
    unit = detect_price_unit(raw)
    multiplier = THOUSANDS_MULTIPLIER if unit is PriceUnit.THOUSANDS else 1

    out: list[float | None] = []
    for value in raw:
        price = _valid_price(value)
        out.append(price * multiplier if price is not None else None)
    return out


def normalize_price(value: Any) -> float | None:
    """Convert a single price to native VND (35.0 and 35000 both give 35000.0)."""
    return normalize_prices([value])[0]


def to_thousands(value: Any) -> float | None:
    """
    Express a price in thousands of VND for side-by-side comparison.

    Values >= 1,000 are divided by 1,000; smaller values are assumed to be
    in thousands already.
    """
    price = _valid_price(value)
    if price is None:
        return None
    return price / THOUSANDS_MULTIPLIER if price >= THOUSANDS_MAX else price


def normalize_recommendation_prices(
    report_price: Any,
    target_price: Any,
    avg_target_price: Any,
) -> tuple[float | None, float | None, float | None]:
    """
    Normalize one recommendation's prices to VND.

    The report price is classified on its own; the target and average target
    are classified together. The upstream source mixes scales between these
    two groups on the same record.

    Returns:
        Tuple of (report_price, target_price, avg_target_price) in VND
    """
    (report,) = normalize_prices([report_price])
    target, avg_target = normalize_prices([target_price, avg_target_price])
    return report, target, avg_target


def percent(value: float | None) -> float | None:
    """Convert a ratio stored as a fraction (0.18) to percent (18.0)."""
    if value is None:
        return None
    return value * 100


# ---------------- Serialization ----------------


def _is_nan_or_inf(x: Any) -> bool:
    """Check if value is NaN or inf, handling numpy types safely."""
    try:
        return math.isnan(x) or math.isinf(x)
    except (TypeError, ValueError):
        return False


def _is_negative_zero(x: Any) -> bool:
    """Check if value is -0.0 (which creates diff noise)."""
    try:
        return x == 0.0 and math.copysign(1.0, x) < 0
    except (TypeError, ValueError):
        return False


def sanitize_nan_inf(obj: Any) -> Any:
    """Recursively replace NaN, inf, -inf with None and -0.0 with 0.0."""
    if isinstance(obj, dict):
        return {k: sanitize_nan_inf(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [sanitize_nan_inf(item) for item in obj]
    elif isinstance(obj, bool):
        return obj
    elif _is_nan_or_inf(obj):
        return None
    elif _is_negative_zero(obj):
        return 0.0
    return obj


def canonical_dumps(obj: Any) -> str:
    """Produce canonical JSON string with sorted keys and minimal separators.

    Uses allow_nan=False to fail fast if NaN/inf values slip through
    sanitization.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
