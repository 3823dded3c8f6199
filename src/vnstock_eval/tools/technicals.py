"""Technical snapshot tool."""

import operator
from time import perf_counter
from typing import Any

import pandas as pd

from vnstock_eval.analysis.settings import CHART_BOLLINGER, DEFAULT_SETTINGS, BollingerSettings
from vnstock_eval.tools.evaluate import load_prices
from vnstock_eval.utils.indicators import (
    band_position,
    calculate_bollinger_bands,
    calculate_pct_change,
    calculate_range_position,
    calculate_sma,
    calculate_volume_ratio,
    calculate_woodie_pivots,
)
from vnstock_eval.utils.normalize import sanitize_nan_inf
from vnstock_eval.utils.provenance import build_error_response, build_meta, price_provenance
from vnstock_eval.utils.validators import FetchParams, check_rule


def _last(series: pd.Series) -> float | None:
    value = series.iloc[-1]
    return None if pd.isna(value) else float(value)


def _round(value: float | None, digits: int = 2) -> float | None:
    return round(value, digits) if value is not None else None


def _rule(value: float | None, threshold: float | None, comparator=operator.gt) -> bool | None:
    if threshold is None:
        return None
    return check_rule(value, threshold, comparator)


def _bollinger_snapshot(closes: pd.Series, price: float, settings: BollingerSettings) -> dict[str, Any]:
    bands = calculate_bollinger_bands(closes, settings.period, settings.std_dev_multiplier).at(-1)
    snapshot: dict[str, Any] = {
        "period": settings.period,
        "std_dev_multiplier": settings.std_dev_multiplier,
        "upper": None,
        "middle": None,
        "lower": None,
        "position": None,
    }
    if bands is not None:
        snapshot.update({k: round(v, 2) for k, v in bands.items()})
        snapshot["position"] = _round(band_position(price, bands["lower"], bands["upper"]), 4)
    return snapshot


async def technicals(symbol: str) -> dict[str, Any]:
    """
    Calculate the technical indicators behind the short-term evaluation.

    Args:
        symbol: Ticker symbol

    Returns:
        Dict with moving averages, Bollinger bands (scoring and chart
        variants), Woodie pivots, momentum, volume ratio and range position
    """
    start_time = perf_counter()
    ind = DEFAULT_SETTINGS.indicators
    volume_high = DEFAULT_SETTINGS.short_term_thresholds.volume_high

    try:
        params = FetchParams(symbol=symbol)
    except ValueError as e:
        return build_error_response(
            error_type="invalid_parameters",
            message=str(e),
            symbol=symbol,
        )

    try:
        df, price_prov = await load_prices(params)
    except ValueError as e:
        return build_error_response(
            error_type="invalid_symbol",
            message=str(e),
            symbol=params.symbol,
        )
    except Exception as e:
        return build_error_response(
            error_type="data_unavailable",
            message=f"Failed to fetch data: {e}",
            symbol=params.symbol,
        )

    if len(df) < ind.min_sessions:
        return build_error_response(
            error_type="insufficient_data",
            message=f"Need at least {ind.min_sessions} sessions, got {len(df)}",
            symbol=params.symbol,
        )

    closes = pd.to_numeric(df["ad_close"], errors="coerce").astype(float).reset_index(drop=True)
    volume = pd.to_numeric(df["volume"], errors="coerce").astype(float).reset_index(drop=True)
    current_price = _last(closes)
    if current_price is None:
        return build_error_response(
            error_type="insufficient_data",
            message="Latest adjusted close is unavailable",
            symbol=params.symbol,
        )

    ma_short = _last(calculate_sma(closes, ind.ma_short_period))
    ma_long = _last(calculate_sma(closes, ind.ma_long_period))
    momentum_short = calculate_pct_change(closes, ind.momentum_short_period)
    momentum_long = calculate_pct_change(closes, ind.momentum_long_period)
    volume_ratio = calculate_volume_ratio(volume, ind.volume_avg_period)
    range_position = calculate_range_position(closes)

    latest = df.iloc[-1]
    pivots = calculate_woodie_pivots(
        float(latest["ad_high"]),
        float(latest["ad_low"]),
        float(latest["ad_close"]),
    )

    duration_ms = (perf_counter() - start_time) * 1000

    response: dict[str, Any] = {
        "meta": build_meta("technicals", duration_ms),
        "data_provenance": {
            "price": price_provenance(price_prov, df),
        },
        "symbol": params.symbol,
        "current_price": round(current_price, 2),
        "moving_averages": {
            f"ma_{ind.ma_short_period}": _round(ma_short),
            f"ma_{ind.ma_long_period}": _round(ma_long),
            "gap_pct": _round((ma_short - ma_long) / ma_long * 100) if ma_short and ma_long else None,
            "rules": {
                "short_above_long": {
                    "triggered": _rule(ma_short, ma_long),
                    "threshold": f"ma{ind.ma_short_period} > ma{ind.ma_long_period}",
                },
                "price_above_long": {
                    "triggered": _rule(current_price, ma_long),
                    "threshold": f"price > ma{ind.ma_long_period}",
                },
            },
        },
        "bollinger": _bollinger_snapshot(closes, current_price, ind.bollinger),
        "bollinger_chart": _bollinger_snapshot(closes, current_price, CHART_BOLLINGER),
        "pivots": pivots.to_dict() if pivots is not None else None,
        "momentum": {
            f"change_{ind.momentum_short_period}d_pct": _round(momentum_short),
            f"change_{ind.momentum_long_period}d_pct": _round(momentum_long),
        },
        "volume": {
            "latest": _last(volume),
            "ratio_to_avg": _round(volume_ratio),
            "avg_period": ind.volume_avg_period,
            "rules": {
                "volume_spike": {
                    "triggered": check_rule(volume_ratio, volume_high),
                    "threshold": f"volume ratio > {volume_high}",
                },
            },
        },
        "range": {
            "sessions": len(closes),
            "high": round(float(closes.max()), 2),
            "low": round(float(closes.min()), 2),
            "position": _round(range_position, 4),
        },
    }

    return sanitize_nan_inf(response)
