"""Run both evaluators for one symbol."""

from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from vnstock_eval.analysis.long_term import evaluate_long_term
from vnstock_eval.analysis.models import RecommendationRecord, StockEvaluation
from vnstock_eval.analysis.settings import DEFAULT_SETTINGS, EvaluationSettings
from vnstock_eval.analysis.short_term import evaluate_short_term


def evaluate_stock(
    symbol: str,
    prices: pd.DataFrame,
    ratios: Mapping[str, Any] | None = None,
    recommendations: Iterable[RecommendationRecord] | None = None,
    settings: EvaluationSettings = DEFAULT_SETTINGS,
    warnings: Iterable[str] = (),
) -> StockEvaluation:
    """
    Produce the short-term and long-term evaluations for a symbol.

    Args:
        symbol: Ticker the inputs belong to
        prices: Validated price frame, ascending by date
        ratios: Ratio code -> value
        recommendations: Parsed analyst records
        settings: Evaluation settings shared by both evaluators
        warnings: Data-quality notes from the caller, passed through

    Returns:
        StockEvaluation with as_of set to the latest bar date
    """
    as_of = None
    if isinstance(prices, pd.DataFrame) and not prices.empty and "date" in prices.columns:
        as_of = str(prices["date"].iloc[-1])

    return StockEvaluation(
        symbol=symbol,
        short_term=evaluate_short_term(prices, settings),
        long_term=evaluate_long_term(prices, ratios, recommendations, settings),
        as_of=as_of,
        warnings=tuple(warnings),
    )
