"""Evaluation data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class Signal(str, Enum):
    """Trading signal produced by an evaluator."""

    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


class RecommendationType(str, Enum):
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


@dataclass(frozen=True)
class RecommendationRecord:
    """One analyst report. Prices are already normalized to VND."""

    firm: str
    type: RecommendationType | None
    report_date: date | None
    report_price: float | None
    target_price: float | None
    avg_target_price: float | None

    def potential_pct(self) -> float | None:
        """Upside from the report price to the firm's target, in percent."""
        if not self.report_price or not self.target_price:
            return None
        return (self.target_price - self.report_price) / self.report_price * 100

    def to_dict(self) -> dict[str, Any]:
        potential = self.potential_pct()
        return {
            "firm": self.firm,
            "type": self.type.value if self.type else None,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "report_price": self.report_price,
            "target_price": self.target_price,
            "avg_target_price": self.avg_target_price,
            "potential_pct": round(potential, 2) if potential is not None else None,
        }


@dataclass(frozen=True)
class Consensus:
    """Tally of analyst recommendations."""

    total: int
    buy: int
    hold: int
    sell: int
    avg_target_price: float | None
    avg_report_price: float | None

    @property
    def buy_pct(self) -> float:
        return self.buy / self.total * 100 if self.total else 0.0

    @property
    def hold_pct(self) -> float:
        return self.hold / self.total * 100 if self.total else 0.0

    @property
    def sell_pct(self) -> float:
        return self.sell / self.total * 100 if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "buy": self.buy,
            "hold": self.hold,
            "sell": self.sell,
            "buy_pct": round(self.buy_pct, 1),
            "hold_pct": round(self.hold_pct, 1),
            "sell_pct": round(self.sell_pct, 1),
            "avg_target_price": _round_price(self.avg_target_price),
            "avg_report_price": _round_price(self.avg_report_price),
        }


@dataclass(frozen=True)
class Evaluation:
    """Result of one evaluator run."""

    signal: Signal
    confidence: float
    reasons: tuple[str, ...] = ()
    net_score: float = 0.0
    evaluated_weight: int = 0
    coverage_pct: float = 0.0
    current_price: float | None = None
    buy_price: float | None = None
    cut_loss_price: float | None = None
    consensus: Consensus | None = None

    @classmethod
    def hold(cls, reason: str, current_price: float | None = None) -> Evaluation:
        """HOLD with zero confidence and a single explanatory reason."""
        return cls(
            signal=Signal.HOLD,
            confidence=0.0,
            reasons=(reason,),
            current_price=current_price,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signal": self.signal.value,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "net_score": self.net_score,
            "evaluated_weight": self.evaluated_weight,
            "coverage_pct": self.coverage_pct,
            "current_price": _round_price(self.current_price),
            "buy_price": _round_price(self.buy_price),
            "cut_loss_price": _round_price(self.cut_loss_price),
            "consensus": self.consensus.to_dict() if self.consensus else None,
        }


@dataclass(frozen=True)
class StockEvaluation:
    """Short-term and long-term evaluations for one symbol."""

    symbol: str
    short_term: Evaluation
    long_term: Evaluation
    as_of: str | None = None
    warnings: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "as_of": self.as_of,
            "short_term": self.short_term.to_dict(),
            "long_term": self.long_term.to_dict(),
            "warnings": list(self.warnings),
        }


def _round_price(value: float | None) -> float | None:
    if value is None:
        return None
    return round(value, 2)
