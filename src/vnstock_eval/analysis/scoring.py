"""Weighted bullish/bearish score accumulation shared by both evaluators."""

from dataclasses import dataclass, field

from vnstock_eval.analysis.models import Signal
from vnstock_eval.analysis.settings import TradingSettings


@dataclass
class ScoreCard:
    """
    Running tally for one evaluation.

    Each factor adds to the bullish or the bearish side (never both) and
    records the weight it was able to evaluate. Reasons keep factor order.
    """

    bullish: float = 0.0
    bearish: float = 0.0
    evaluated_weight: int = 0
    reasons: list[str] = field(default_factory=list)

    def bull(self, points: float, reason: str) -> None:
        self.bullish += points
        self.reasons.append(reason)

    def bear(self, points: float, reason: str) -> None:
        self.bearish += points
        self.reasons.append(reason)

    def note(self, reason: str) -> None:
        self.reasons.append(reason)

    def evaluated(self, weight: int) -> None:
        self.evaluated_weight += weight

    @property
    def net_score(self) -> float:
        return self.bullish - self.bearish


def signal_from_score(net_score: float, trading: TradingSettings) -> Signal:
    if net_score > trading.buy_threshold:
        return Signal.BUY
    if net_score < trading.sell_threshold:
        return Signal.SELL
    return Signal.HOLD


def confidence_from_score(net_score: float, cap: float = 100.0) -> float:
    """Heuristic confidence: magnitude of the net score, capped."""
    return float(min(abs(net_score), cap))
