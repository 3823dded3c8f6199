"""Short-term technical and long-term fundamental stock evaluation."""

from vnstock_eval.analysis.consensus import aggregate_consensus, filter_recent, parse_recommendations
from vnstock_eval.analysis.evaluate import evaluate_stock
from vnstock_eval.analysis.long_term import evaluate_long_term
from vnstock_eval.analysis.models import (
    Consensus,
    Evaluation,
    RecommendationRecord,
    RecommendationType,
    Signal,
    StockEvaluation,
)
from vnstock_eval.analysis.settings import DEFAULT_SETTINGS, EvaluationSettings
from vnstock_eval.analysis.short_term import evaluate_short_term

__all__ = [
    "aggregate_consensus",
    "filter_recent",
    "parse_recommendations",
    "evaluate_stock",
    "evaluate_long_term",
    "evaluate_short_term",
    "Consensus",
    "Evaluation",
    "RecommendationRecord",
    "RecommendationType",
    "Signal",
    "StockEvaluation",
    "DEFAULT_SETTINGS",
    "EvaluationSettings",
]
