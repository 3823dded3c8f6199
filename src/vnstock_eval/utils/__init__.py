"""Utility modules."""

from vnstock_eval.utils.indicators import (
    calculate_bollinger_bands,
    calculate_pct_change,
    calculate_range_position,
    calculate_sma,
    calculate_std_dev,
    calculate_volume_ratio,
    calculate_woodie_pivots,
)
from vnstock_eval.utils.normalize import (
    canonical_dumps,
    detect_price_unit,
    normalize_price,
    normalize_recommendation_prices,
    to_thousands,
)
from vnstock_eval.utils.ohlcv import df_to_csv, filter_valid_bars, standardize_ohlcv, validate_ohlcv
from vnstock_eval.utils.validators import FetchParams, check_rule, parse_ratio_set, safe_float

__all__ = [
    "calculate_bollinger_bands",
    "calculate_pct_change",
    "calculate_range_position",
    "calculate_sma",
    "calculate_std_dev",
    "calculate_volume_ratio",
    "calculate_woodie_pivots",
    "canonical_dumps",
    "detect_price_unit",
    "normalize_price",
    "normalize_recommendation_prices",
    "to_thousands",
    "df_to_csv",
    "filter_valid_bars",
    "standardize_ohlcv",
    "validate_ohlcv",
    "FetchParams",
    "check_rule",
    "parse_ratio_set",
    "safe_float",
]
