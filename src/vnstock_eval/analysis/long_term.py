"""Long-term fundamental evaluator.

Combines analyst consensus, upside to the average target, valuation
(P/E, P/B), profitability (ROE), dividend yield, size and free float.
Absent ratios are skipped and only lower the evaluated weight; when less
than half of the maximum weight could be evaluated the confidence is
damped.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import pandas as pd

from vnstock_eval.analysis.consensus import aggregate_consensus
from vnstock_eval.analysis.models import Consensus, Evaluation, RecommendationRecord
from vnstock_eval.analysis.scoring import ScoreCard, confidence_from_score, signal_from_score
from vnstock_eval.analysis.settings import (
    DEFAULT_SETTINGS,
    RATIO_DIVIDEND_YIELD,
    RATIO_FREE_FLOAT,
    RATIO_MARKET_CAP,
    RATIO_PB,
    RATIO_PE,
    RATIO_ROE,
    EvaluationSettings,
)
from vnstock_eval.utils.normalize import percent, to_thousands
from vnstock_eval.utils.validators import parse_ratio_set, safe_float

logger = logging.getLogger(__name__)


def evaluate_long_term(
    prices: pd.DataFrame | None,
    ratios: Mapping[str, Any] | None,
    recommendations: Iterable[RecommendationRecord] | None = None,
    settings: EvaluationSettings = DEFAULT_SETTINGS,
) -> Evaluation:
    """
    Evaluate long-term fundamentals for one symbol.

    Args:
        prices: Price frame; only the latest close is used
        ratios: Ratio code -> value (ROE, dividend yield, free float as fractions)
        recommendations: Parsed analyst records, ideally the last 12 months
        settings: Weights, thresholds and trading settings

    Returns:
        Evaluation with consensus attached when recommendations exist

    Raises:
        TypeError: If ratios or recommendations have the wrong shape
        ValueError: If the price frame has no close column
    """
    ratio_set = parse_ratio_set(ratios)
    records = _check_records(recommendations)
    current_price = latest_close(prices)

    consensus = aggregate_consensus(records) if records else None

    try:
        card = _score(ratio_set, consensus, current_price, settings)
    except (ValueError, ArithmeticError) as e:
        logger.warning(f"Long-term evaluation degraded to HOLD: {e}")
        return Evaluation.hold(f"Evaluation unavailable: {e}", current_price=current_price)

    trading = settings.trading
    max_weight = settings.long_term_weights.total
    coverage_pct = card.evaluated_weight / max_weight * 100

    net_score = card.net_score
    confidence = confidence_from_score(net_score)
    if coverage_pct < trading.min_fundamental_coverage_pct:
        confidence = min(confidence * trading.low_coverage_damping, trading.low_coverage_confidence_cap)
        card.note(
            f"Insufficient fundamental data: {card.evaluated_weight}/{max_weight} "
            f"factor weight evaluated ({coverage_pct:.1f}%)"
        )

    return Evaluation(
        signal=signal_from_score(net_score, trading),
        confidence=round(confidence, 2),
        reasons=tuple(card.reasons),
        net_score=net_score,
        evaluated_weight=card.evaluated_weight,
        coverage_pct=round(coverage_pct, 1),
        current_price=current_price,
        consensus=consensus,
    )


def latest_close(prices: pd.DataFrame | None) -> float | None:
    """Latest raw close (adjusted close as fallback), or None if unusable."""
    if prices is None:
        return None
    if not isinstance(prices, pd.DataFrame):
        raise TypeError(f"prices must be a DataFrame, got {type(prices).__name__}")
    if prices.empty:
        return None

    columns = [c for c in ("close", "ad_close") if c in prices.columns]
    if not columns:
        raise ValueError("Price frame has neither 'close' nor 'ad_close'")

    latest = prices.iloc[-1]
    for col in columns:
        value = safe_float(latest[col])
        if value is not None and value > 0:
            return value
    return None


def _check_records(recommendations: Iterable[RecommendationRecord] | None) -> list[RecommendationRecord]:
    if recommendations is None:
        return []
    records = list(recommendations)
    for record in records:
        if not isinstance(record, RecommendationRecord):
            raise TypeError(
                f"Recommendations must be RecommendationRecord, got {type(record).__name__}; "
                "parse raw payloads with parse_recommendations first"
            )
    return records


def _score(
    ratios: dict[str, float],
    consensus: Consensus | None,
    current_price: float | None,
    settings: EvaluationSettings,
) -> ScoreCard:
    w = settings.long_term_weights
    t = settings.long_term_thresholds
    s = settings.long_term_scores
    card = ScoreCard()

    # 1. Analyst consensus
    if consensus is not None and consensus.total > 0:
        card.evaluated(w.consensus)
        tally = (
            f"{consensus.buy_pct:.0f}% BUY, {consensus.hold_pct:.0f}% HOLD, "
            f"{consensus.sell_pct:.0f}% SELL of {consensus.total} reports"
        )
        if consensus.buy_pct >= t.consensus_buy_strong_pct:
            card.bull(s.consensus_strong, f"Strong analyst consensus to buy: {tally}")
        elif consensus.buy_pct >= t.consensus_buy_pct:
            card.bull(s.consensus_good, f"Analysts lean to buy: {tally}")
        elif consensus.sell_pct >= t.consensus_sell_pct:
            card.bear(s.consensus_bearish, f"Analysts lean to sell: {tally}")
        else:
            card.note(f"Mixed analyst consensus: {tally}")

    # 2. Upside to the average target, both sides in thousands of VND
    if consensus is not None and consensus.avg_target_price and current_price:
        target_k = to_thousands(consensus.avg_target_price)
        current_k = to_thousands(current_price)
        if target_k is not None and current_k is not None:
            card.evaluated(w.upside)
            upside = (target_k - current_k) / current_k * 100
            label = f"average target {target_k:.2f}k vs price {current_k:.2f}k ({upside:+.1f}%)"
            if upside > t.upside_strong_pct:
                card.bull(s.upside_strong, f"Large upside to {label}")
            elif upside > t.upside_good_pct:
                card.bull(s.upside_good, f"Good upside to {label}")
            elif upside > 0:
                card.bull(s.upside_small, f"Small upside to {label}")
            elif upside < t.downside_pct:
                card.bear(s.downside_bearish, f"Price above {label}")
            else:
                card.note(f"Price close to {label}")

    # 3. P/E
    pe = ratios.get(RATIO_PE)
    if pe is not None and pe != 0:
        card.evaluated(w.pe)
        if pe < 0:
            card.bear(s.pe_negative_bearish, f"Negative P/E ({pe:.2f}) - company is loss-making")
        elif pe < t.pe_very_low:
            card.bull(s.pe_very_low, f"Low P/E ({pe:.2f}) - attractive valuation")
        elif pe <= t.pe_reasonable_max:
            card.bull(s.pe_reasonable, f"Reasonable P/E ({pe:.2f})")
        elif pe <= t.pe_high:
            card.bear(s.pe_high_bearish, f"High P/E ({pe:.2f})")
        else:
            card.bear(s.pe_very_high_bearish, f"Very high P/E ({pe:.2f}) - expensive")

    # 4. P/B
    pb = ratios.get(RATIO_PB)
    if pb is not None and pb > 0:
        card.evaluated(w.pb)
        if pb < t.pb_undervalued:
            card.bull(s.pb_undervalued, f"P/B below book ({pb:.2f}) - undervalued")
        elif pb <= t.pb_reasonable_max:
            card.bull(s.pb_reasonable, f"Reasonable P/B ({pb:.2f})")
        elif pb <= t.pb_high:
            card.bear(s.pb_high_bearish, f"High P/B ({pb:.2f})")
        else:
            card.bear(s.pb_very_high_bearish, f"Very high P/B ({pb:.2f})")

    # 5. ROE
    roe = percent(ratios.get(RATIO_ROE))
    if roe is not None:
        card.evaluated(w.roe)
        if roe > t.roe_excellent_pct:
            card.bull(s.roe_excellent, f"Excellent ROE ({roe:.1f}%)")
        elif roe >= t.roe_good_pct:
            card.bull(s.roe_good, f"Good ROE ({roe:.1f}%)")
        elif roe >= t.roe_average_pct:
            card.bull(s.roe_average, f"Average ROE ({roe:.1f}%)")
        elif roe > 0:
            card.bear(s.roe_low_bearish, f"Low ROE ({roe:.1f}%)")
        else:
            card.bear(s.roe_negative_bearish, f"Negative ROE ({roe:.1f}%)")

    # 6. Dividend yield
    dividend = percent(ratios.get(RATIO_DIVIDEND_YIELD))
    if dividend is not None and dividend >= 0:
        card.evaluated(w.dividend)
        if dividend > t.dividend_high_pct:
            card.bull(s.dividend_high, f"High dividend yield ({dividend:.1f}%)")
        elif dividend >= t.dividend_good_pct:
            card.bull(s.dividend_good, f"Good dividend yield ({dividend:.1f}%)")
        elif dividend > 0:
            card.note(f"Low dividend yield ({dividend:.1f}%)")
        else:
            card.note("No dividend")

    # 7. Market capitalisation
    market_cap = ratios.get(RATIO_MARKET_CAP)
    if market_cap is not None and market_cap > 0:
        card.evaluated(w.market_cap)
        billions = market_cap / 1e9
        if market_cap > t.market_cap_large:
            card.bull(s.market_cap_large, f"Large cap ({billions:,.0f} bn VND)")
        elif market_cap > t.market_cap_medium:
            card.bull(s.market_cap_medium, f"Mid cap ({billions:,.0f} bn VND)")
        else:
            card.note(f"Small cap ({billions:,.0f} bn VND) - higher risk")

    # 8. Free float
    free_float = percent(ratios.get(RATIO_FREE_FLOAT))
    if free_float is not None and free_float >= 0:
        card.evaluated(w.free_float)
        if free_float > t.free_float_high_pct:
            card.bull(s.free_float_high, f"High free float ({free_float:.1f}%) - good liquidity")
        elif free_float < t.free_float_low_pct:
            card.bear(s.free_float_low_bearish, f"Low free float ({free_float:.1f}%) - thin liquidity")
        else:
            card.note(f"Moderate free float ({free_float:.1f}%)")

    return card
