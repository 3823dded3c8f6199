"""Analyst consensus tool."""

from time import perf_counter
from typing import Any

from vnstock_eval.analysis.consensus import aggregate_consensus, filter_recent, lookback_start
from vnstock_eval.data.vndirect_client import fetch_recommendations, get_vietnam_today
from vnstock_eval.utils.normalize import sanitize_nan_inf
from vnstock_eval.utils.provenance import build_error_response, build_meta, recommendation_provenance
from vnstock_eval.utils.validators import FetchParams

MAX_LOOKBACK_MONTHS = 60


async def analyst_consensus(symbol: str, months: int = 12) -> dict[str, Any]:
    """
    Tally analyst BUY/HOLD/SELL recommendations over a lookback window.

    Report and target prices are normalized to VND per record before
    averaging.

    Args:
        symbol: Ticker symbol
        months: Lookback window in months (1-60, default 12)

    Returns:
        Dict with consensus tally, average prices and the individual reports
    """
    start_time = perf_counter()

    try:
        params = FetchParams(symbol=symbol)
        if isinstance(months, bool) or not isinstance(months, int) or not 1 <= months <= MAX_LOOKBACK_MONTHS:
            raise ValueError(f"Invalid months {months!r}. Must be an integer between 1 and {MAX_LOOKBACK_MONTHS}")
    except ValueError as e:
        return build_error_response(
            error_type="invalid_parameters",
            message=str(e),
            symbol=symbol,
        )

    today = get_vietnam_today()
    start_date = lookback_start(today, months)

    try:
        records = await fetch_recommendations(params.symbol, start_date=start_date)
    except Exception as e:
        return build_error_response(
            error_type="data_unavailable",
            message=f"Failed to fetch recommendations: {e}",
            symbol=params.symbol,
        )

    records = filter_recent(records, today, months)
    consensus = aggregate_consensus(records)

    duration_ms = (perf_counter() - start_time) * 1000

    response: dict[str, Any] = {
        "meta": build_meta("analyst_consensus", duration_ms),
        "data_provenance": {
            "recommendations": recommendation_provenance(records, start_date),
        },
        "symbol": params.symbol,
        "lookback_months": months,
        "consensus": consensus.to_dict(),
        "recommendations": [r.to_dict() for r in records],
    }

    return sanitize_nan_inf(response)
