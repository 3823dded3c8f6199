"""Response envelope: tool metadata, VNDirect provenance blocks and error responses."""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any, Literal, get_args

import pandas as pd

from vnstock_eval import SCHEMA_VERSION, SERVER_VERSION
from vnstock_eval.analysis.models import RecommendationRecord
from vnstock_eval.analysis.settings import RATIO_CODES, VIETNAM_TZ

ErrorType = Literal["invalid_parameters", "invalid_symbol", "data_unavailable", "insufficient_data"]
ERROR_TYPES: tuple[str, ...] = get_args(ErrorType)

# Every price leaving the server is in VND
PRICE_UNIT = "VND"


def build_meta(tool: str, duration_ms: float | None = None) -> dict[str, Any]:
    """Metadata block with server/schema versions and timing."""
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def price_provenance(
    fetch_info: Mapping[str, Any],
    prices: pd.DataFrame,
    market_state: Mapping[str, str] | None = None,
    as_of: str | None = None,
) -> dict[str, Any]:
    """
    Provenance for the daily bars behind an evaluation.

    Args:
        fetch_info: Fields from load_prices: source ("vndirect" or "cache"),
            resource_uri and, on a live fetch, attempts/backoff/retry_trace
        prices: The validated price frame that was evaluated
        market_state: get_market_state() result, if checked
        as_of: Fetch timestamp (default: now, UTC)

    Returns:
        Provenance dict with bar range, timezone, unit and retry details
    """
    info = dict(fetch_info)
    dates = prices["date"] if "date" in prices.columns else pd.Series(dtype=str)

    prov: dict[str, Any] = {
        "source": info.pop("source", "vndirect"),
        "as_of": as_of or _now(),
        "bar_timezone": VIETNAM_TZ,
        "price_unit": PRICE_UNIT,
        "rows": len(prices),
        "first_bar_date": str(dates.iloc[0]) if len(dates) else None,
        "last_bar_date": str(dates.iloc[-1]) if len(dates) else None,
    }
    if market_state is not None:
        prov["market_state"] = market_state["state"]
        prov["market_state_method"] = market_state["method"]
    prov.update(info)
    prov["warnings"] = []
    return prov


def ratio_provenance(
    ratios: Mapping[str, float],
    warnings: Iterable[str] = (),
    as_of: str | None = None,
) -> dict[str, Any]:
    """Provenance for the ratios/latest snapshot: which requested codes came back."""
    return {
        "source": "vndirect",
        "as_of": as_of or _now(),
        "codes_present": sorted(ratios),
        "codes_missing": sorted(set(RATIO_CODES) - set(ratios)),
        "warnings": list(warnings),
    }


def recommendation_provenance(
    records: Iterable[RecommendationRecord],
    start_date: date,
    warnings: Iterable[str] = (),
    as_of: str | None = None,
) -> dict[str, Any]:
    """
    Provenance for analyst recommendations.

    Reports with a label that maps to none of BUY/HOLD/SELL are flagged
    in warnings; they are listed but not counted.
    """
    records = list(records)
    warnings = list(warnings)
    unrecognised = sum(1 for r in records if r.type is None)
    if unrecognised:
        warnings.append(f"{unrecognised} report(s) with unrecognised recommendation type")

    return {
        "source": "vndirect",
        "as_of": as_of or _now(),
        "start_date": start_date.isoformat(),
        "records": len(records),
        "price_unit": PRICE_UNIT,
        "warnings": warnings,
    }


def build_error_response(
    error_type: ErrorType,
    message: str,
    symbol: str | None = None,
) -> dict[str, Any]:
    """
    Build standardized error response.

    Raises:
        ValueError: If error_type is not one of ERROR_TYPES
    """
    if error_type not in ERROR_TYPES:
        raise ValueError(f"Unknown error_type {error_type!r}")

    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta("error"),
    }
    if symbol is not None:
        response["symbol"] = symbol
    return response
