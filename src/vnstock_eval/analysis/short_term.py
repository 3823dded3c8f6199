"""Short-term technical evaluator.

Scores five independent factors over adjusted closes:

| Factor              | Weight | Bullish                         | Bearish                         |
|---------------------|--------|---------------------------------|---------------------------------|
| MA10 vs MA30        | 30     | MA10 > MA30 (+30 if gap > 2%)   | mirror                          |
| Bollinger position  | 25     | <= 0.2 (+25), < 0.4 (+15)       | >= 0.8 (+25), > 0.6 (+15)       |
| Momentum 5d/10d     | 20     | both > 3%/5% (+20), else 5d > 0 | both < -3%/-5%, else 5d < 0     |
| Volume vs 10d avg   | 15     | ratio > 1.5 with 5d gain        | ratio > 1.5 with 5d loss        |
| Range position      | 10     | < 0.3                           | > 0.7                           |
"""

import logging

import numpy as np
import pandas as pd

from vnstock_eval.analysis.models import Evaluation, Signal
from vnstock_eval.analysis.scoring import ScoreCard, confidence_from_score, signal_from_score
from vnstock_eval.analysis.settings import DEFAULT_SETTINGS, EvaluationSettings
from vnstock_eval.utils.indicators import (
    band_position,
    calculate_bollinger_bands,
    calculate_pct_change,
    calculate_range_position,
    calculate_sma,
    calculate_volume_ratio,
    calculate_woodie_pivots,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("ad_close", "volume")


def evaluate_short_term(
    prices: pd.DataFrame,
    settings: EvaluationSettings = DEFAULT_SETTINGS,
) -> Evaluation:
    """
    Evaluate short-term technical posture from an ascending price frame.

    Args:
        prices: Standardized, validated price frame sorted ascending by date
        settings: Weights, thresholds and indicator periods

    Returns:
        Evaluation; HOLD with zero confidence when data is insufficient

    Raises:
        ValueError: If the frame lacks required columns
    """
    _check_columns(prices)

    ind = settings.indicators
    if len(prices) < ind.min_sessions:
        return Evaluation.hold(
            f"Insufficient data: need at least {ind.min_sessions} sessions, got {len(prices)}"
        )

    closes = pd.to_numeric(prices["ad_close"], errors="coerce").astype(float).reset_index(drop=True)
    current_price = float(closes.iloc[-1])
    if not np.isfinite(current_price) or current_price <= 0:
        return Evaluation.hold("Insufficient data: latest adjusted close is unavailable")

    try:
        card = _score(prices, closes, current_price, settings)
    except (ValueError, ArithmeticError) as e:
        logger.warning(f"Short-term evaluation degraded to HOLD: {e}")
        return Evaluation.hold(f"Evaluation unavailable: {e}", current_price=current_price)

    net_score = card.net_score
    signal = signal_from_score(net_score, settings.trading)

    buy_price = None
    cut_loss_price = None
    if signal is Signal.BUY:
        pivots = _latest_pivots(prices)
        if pivots is not None:
            buy_price = pivots.s2
        cut_loss_price = round(current_price * settings.trading.cut_loss_multiplier, 2)

    return Evaluation(
        signal=signal,
        confidence=confidence_from_score(net_score),
        reasons=tuple(card.reasons),
        net_score=net_score,
        evaluated_weight=card.evaluated_weight,
        coverage_pct=round(card.evaluated_weight / _max_weight(settings) * 100, 1),
        current_price=current_price,
        buy_price=buy_price,
        cut_loss_price=cut_loss_price,
    )


def _check_columns(prices: pd.DataFrame) -> None:
    if not isinstance(prices, pd.DataFrame):
        raise TypeError(f"prices must be a DataFrame, got {type(prices).__name__}")
    missing = [c for c in REQUIRED_COLUMNS if c not in prices.columns]
    if missing:
        raise ValueError(f"Price frame missing required columns: {missing}")


def _max_weight(settings: EvaluationSettings) -> int:
    w = settings.short_term_weights
    return w.moving_average + w.bollinger + w.momentum + w.volume + w.range_position


def _score(
    prices: pd.DataFrame,
    closes: pd.Series,
    current_price: float,
    settings: EvaluationSettings,
) -> ScoreCard:
    ind = settings.indicators
    w = settings.short_term_weights
    t = settings.short_term_thresholds
    card = ScoreCard()

    # 1. Moving average crossover
    ma_short = calculate_sma(closes, ind.ma_short_period).iloc[-1]
    ma_long = calculate_sma(closes, ind.ma_long_period).iloc[-1]
    if not pd.isna(ma_short) and not pd.isna(ma_long) and ma_long > 0:
        card.evaluated(w.moving_average)
        gap_pct = (ma_short - ma_long) / ma_long * 100
        short_label = f"MA{ind.ma_short_period}"
        long_label = f"MA{ind.ma_long_period}"
        if ma_short > ma_long:
            if gap_pct > t.ma_strong_gap_pct:
                card.bull(w.moving_average, f"{short_label} above {long_label} by {gap_pct:.2f}% - strong uptrend")
            else:
                card.bull(w.moving_average_weak, f"{short_label} above {long_label} by {gap_pct:.2f}% - uptrend")
        elif ma_short < ma_long:
            if -gap_pct > t.ma_strong_gap_pct:
                card.bear(w.moving_average, f"{short_label} below {long_label} by {-gap_pct:.2f}% - strong downtrend")
            else:
                card.bear(w.moving_average_weak, f"{short_label} below {long_label} by {-gap_pct:.2f}% - downtrend")
        else:
            card.note(f"{short_label} equals {long_label} - no trend")

    # 2. Bollinger band position
    bands = calculate_bollinger_bands(
        closes,
        ind.bollinger.period,
        ind.bollinger.std_dev_multiplier,
    ).at(-1)
    position = band_position(current_price, bands["lower"], bands["upper"]) if bands else None
    if position is not None:
        card.evaluated(w.bollinger)
        if position <= t.bb_oversold:
            card.bull(w.bollinger, f"Price near lower Bollinger band (position {position:.2f}) - oversold")
        elif position >= t.bb_overbought:
            card.bear(w.bollinger, f"Price near upper Bollinger band (position {position:.2f}) - overbought")
        elif position < t.bb_support:
            card.bull(w.bollinger_weak, f"Price in lower Bollinger zone (position {position:.2f}) - support")
        elif position > t.bb_resistance:
            card.bear(w.bollinger_weak, f"Price in upper Bollinger zone (position {position:.2f}) - resistance")
        else:
            card.note(f"Price mid-band (position {position:.2f}) - neutral")

    # 3. Momentum
    momentum_short = calculate_pct_change(closes, ind.momentum_short_period)
    momentum_long = calculate_pct_change(closes, ind.momentum_long_period)
    if momentum_short is not None:
        card.evaluated(w.momentum)
        label = (
            f"{momentum_short:+.2f}% over {ind.momentum_short_period} sessions"
            + (f", {momentum_long:+.2f}% over {ind.momentum_long_period} sessions" if momentum_long is not None else "")
        )
        strong_up = (
            momentum_long is not None
            and momentum_short > t.momentum_short_pct
            and momentum_long > t.momentum_long_pct
        )
        strong_down = (
            momentum_long is not None
            and momentum_short < -t.momentum_short_pct
            and momentum_long < -t.momentum_long_pct
        )
        if strong_up:
            card.bull(w.momentum, f"Strong upward momentum: {label}")
        elif strong_down:
            card.bear(w.momentum, f"Strong downward momentum: {label}")
        elif momentum_short > 0:
            card.bull(w.momentum_weak, f"Positive momentum: {label}")
        elif momentum_short < 0:
            card.bear(w.momentum_weak, f"Negative momentum: {label}")
        else:
            card.note(f"Flat momentum: {label}")

    # 4. Volume confirmation
    volume_ratio = calculate_volume_ratio(prices["volume"].reset_index(drop=True), ind.volume_avg_period)
    if volume_ratio is not None:
        card.evaluated(w.volume)
        label = f"Volume {volume_ratio:.2f}x the {ind.volume_avg_period}-session average"
        if volume_ratio > t.volume_high and momentum_short is not None and momentum_short > 0:
            card.bull(w.volume, f"{label} confirms the advance")
        elif volume_ratio > t.volume_high and momentum_short is not None and momentum_short < 0:
            card.bear(w.volume, f"{label} confirms the decline")
        elif volume_ratio > t.volume_high:
            card.note(f"{label} without a price direction")
        elif volume_ratio < t.volume_low:
            card.note(f"Low volume: {volume_ratio:.2f}x the {ind.volume_avg_period}-session average - weak conviction")
        else:
            card.note(f"{label} - normal activity")

    # 5. Position within the supplied window's range
    range_position = calculate_range_position(closes)
    if range_position is not None:
        card.evaluated(w.range_position)
        window = len(closes)
        if range_position < t.range_bottom:
            card.bull(w.range_position, f"Price near {window}-session low (range position {range_position:.2f})")
        elif range_position > t.range_top:
            card.bear(w.range_position, f"Price near {window}-session high (range position {range_position:.2f})")
        else:
            card.note(f"Price mid-range over {window} sessions (range position {range_position:.2f})")

    return card


def _latest_pivots(prices: pd.DataFrame):
    """Woodie pivots from the latest session's adjusted high/low/close."""
    latest = prices.iloc[-1]
    high = latest.get("ad_high", latest.get("high"))
    low = latest.get("ad_low", latest.get("low"))
    close = latest.get("ad_close")
    try:
        return calculate_woodie_pivots(float(high), float(low), float(close))
    except (TypeError, ValueError):
        return None
