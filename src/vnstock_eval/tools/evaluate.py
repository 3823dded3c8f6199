"""Stock evaluation tool: short-term technical and long-term fundamental signals."""

import asyncio
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

import pandas as pd

from vnstock_eval.analysis import evaluate_stock
from vnstock_eval.analysis.consensus import lookback_start
from vnstock_eval.data.cache import price_cache
from vnstock_eval.data.vndirect_client import (
    fetch_ratios,
    fetch_recommendations,
    fetch_stock_prices_with_provenance,
    get_market_state,
    get_vietnam_today,
)
from vnstock_eval.utils.normalize import sanitize_nan_inf
from vnstock_eval.utils.provenance import (
    build_error_response,
    build_meta,
    price_provenance,
    ratio_provenance,
    recommendation_provenance,
)
from vnstock_eval.utils.validators import DEFAULT_SIZE, FetchParams

logger = logging.getLogger(__name__)

RECOMMENDATION_LOOKBACK_MONTHS = 12


async def load_prices(params: FetchParams, force_refresh: bool = False) -> tuple[pd.DataFrame, dict[str, Any]]:
    """
    Read validated bars from the price cache, fetching on a miss.

    Args:
        params: Fetch parameters (cache key)
        force_refresh: Skip and replace any cached entry

    Returns:
        Tuple of (price frame, provenance fields including source and resource_uri)
    """
    uri = params.to_uri()
    if force_refresh:
        price_cache.invalidate(uri)
    else:
        df = price_cache.get_frame(params)
        if df is not None:
            logger.debug(f"Cache hit for {uri}")
            return df, {"source": "cache", "resource_uri": uri}
        logger.debug(f"Cache miss for {uri}")

    df, prov = await fetch_stock_prices_with_provenance(params)
    price_cache.store(params, df)
    prov["resource_uri"] = uri
    return df, prov


async def evaluate(
    symbol: str,
    size: int = DEFAULT_SIZE,
    force_refresh: bool = False,
) -> dict[str, Any]:
    """
    Evaluate a Vietnamese stock on short-term technicals and long-term fundamentals.

    Prices, ratios and the last 12 months of analyst recommendations are
    fetched concurrently. Ratio and recommendation failures are not fatal:
    the long-term evaluation proceeds with what is available.

    Args:
        symbol: HOSE/HNX/UPCOM ticker (e.g. FPT, VNM)
        size: Number of daily sessions to fetch (30-1000, default 270)
        force_refresh: Bypass the price cache

    Returns:
        Dict with short_term and long_term evaluations, the ratio snapshot
        and provenance
    """
    start_time = perf_counter()

    try:
        params = FetchParams(symbol=symbol, size=size)
    except ValueError as e:
        return build_error_response(
            error_type="invalid_parameters",
            message=str(e),
            symbol=symbol,
        )

    start_date = lookback_start(get_vietnam_today(), RECOMMENDATION_LOOKBACK_MONTHS)
    price_result, ratios_result, recs_result = await asyncio.gather(
        load_prices(params, force_refresh),
        fetch_ratios(params.symbol),
        fetch_recommendations(params.symbol, start_date=start_date),
        return_exceptions=True,
    )

    if isinstance(price_result, ValueError):
        return build_error_response(
            error_type="invalid_symbol",
            message=str(price_result),
            symbol=params.symbol,
        )
    if isinstance(price_result, BaseException):
        return build_error_response(
            error_type="data_unavailable",
            message=f"Failed to fetch data: {price_result}",
            symbol=params.symbol,
        )
    df, price_info = price_result

    ratio_warnings: list[str] = []
    if isinstance(ratios_result, BaseException):
        logger.warning(f"evaluate({params.symbol}): ratios unavailable: {ratios_result}")
        ratio_warnings.append(f"Ratios unavailable: {ratios_result}")
        ratios_result = {}
    rec_warnings: list[str] = []
    if isinstance(recs_result, BaseException):
        logger.warning(f"evaluate({params.symbol}): recommendations unavailable: {recs_result}")
        rec_warnings.append(f"Recommendations unavailable: {recs_result}")
        recs_result = []

    result = evaluate_stock(
        params.symbol,
        df,
        ratios_result,
        recs_result,
        warnings=ratio_warnings + rec_warnings,
    )

    fetched_at = datetime.now(timezone.utc).isoformat()
    duration_ms = (perf_counter() - start_time) * 1000

    response: dict[str, Any] = {
        "meta": build_meta("evaluate", duration_ms),
        "data_provenance": {
            "price": price_provenance(price_info, df, get_market_state(), as_of=fetched_at),
            "ratios": ratio_provenance(ratios_result, ratio_warnings, as_of=fetched_at),
            "recommendations": recommendation_provenance(
                recs_result,
                start_date,
                rec_warnings,
                as_of=fetched_at,
            ),
        },
        **result.to_dict(),
        # Raw ratio snapshot; ROE, dividend yield and free float are fractions
        "ratios": dict(sorted(ratios_result.items())),
    }

    return sanitize_nan_inf(response)
