"""Analyst recommendation parsing and consensus aggregation."""

import logging
import unicodedata
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

import pandas as pd

from vnstock_eval.analysis.models import Consensus, RecommendationRecord, RecommendationType
from vnstock_eval.utils.normalize import normalize_recommendation_prices

logger = logging.getLogger(__name__)

# Accent-stripped, upper-cased labels -> recommendation type
_TYPE_ALIASES: dict[str, RecommendationType] = {
    "BUY": RecommendationType.BUY,
    "STRONG BUY": RecommendationType.BUY,
    "OUTPERFORM": RecommendationType.BUY,
    "ADD": RecommendationType.BUY,
    "MUA": RecommendationType.BUY,
    "HOLD": RecommendationType.HOLD,
    "NEUTRAL": RecommendationType.HOLD,
    "MARKET PERFORM": RecommendationType.HOLD,
    "NAM GIU": RecommendationType.HOLD,
    "TRUNG LAP": RecommendationType.HOLD,
    "SELL": RecommendationType.SELL,
    "STRONG SELL": RecommendationType.SELL,
    "UNDERPERFORM": RecommendationType.SELL,
    "REDUCE": RecommendationType.SELL,
    "BAN": RecommendationType.SELL,
}


def _fold(text: str) -> str:
    """Strip accents and case so 'Bán', 'BAN' and 'ban' compare equal."""
    text = text.replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.upper().split())


def parse_recommendation_type(value: Any) -> RecommendationType | None:
    """Map a free-form recommendation label to BUY/HOLD/SELL, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    return _TYPE_ALIASES.get(_fold(value))


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_recommendations(raw: Iterable[Mapping[str, Any]] | None) -> list[RecommendationRecord]:
    """
    Parse VNDirect recommendation records into normalized RecommendationRecords.

    Prices are normalized to VND per record. Records whose type cannot be
    recognised are kept with type=None so they still contribute prices.

    Raises:
        TypeError: If raw is not a list of mappings
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)):
        raise TypeError(f"Recommendations must be a list of records, got {type(raw).__name__}")

    records: list[RecommendationRecord] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise TypeError(f"Recommendation entries must be mappings, got {type(entry).__name__}")

        report, target, avg_target = normalize_recommendation_prices(
            entry.get("reportPrice"),
            entry.get("targetPrice"),
            entry.get("avgTargetPrice"),
        )
        rec_type = parse_recommendation_type(entry.get("type"))
        if rec_type is None:
            logger.debug(f"Unrecognised recommendation type: {entry.get('type')!r}")

        records.append(
            RecommendationRecord(
                firm=str(entry.get("firm") or "").strip(),
                type=rec_type,
                report_date=_parse_date(entry.get("reportDate")),
                report_price=report,
                target_price=target,
                avg_target_price=avg_target,
            )
        )
    return records


def filter_recent(
    records: Iterable[RecommendationRecord],
    today: date,
    months: int = 12,
) -> list[RecommendationRecord]:
    """Keep records reported within the lookback window (undated records are dropped)."""
    cutoff = lookback_start(today, months)
    return [r for r in records if r.report_date is not None and cutoff <= r.report_date <= today]


def lookback_start(today: date, months: int = 12) -> date:
    """Calendar date `months` months before today (clamped to month end)."""
    return (pd.Timestamp(today) - pd.DateOffset(months=months)).date()


def aggregate_consensus(records: Iterable[RecommendationRecord]) -> Consensus:
    """
    Tally BUY/HOLD/SELL counts and average prices.

    The average target is the source's cross-firm average carried on the
    records (first record that has one, newest first as delivered), falling
    back to the mean of individual targets. The average report price is the
    mean of report prices.
    """
    records = list(records)

    buy = sum(1 for r in records if r.type is RecommendationType.BUY)
    hold = sum(1 for r in records if r.type is RecommendationType.HOLD)
    sell = sum(1 for r in records if r.type is RecommendationType.SELL)

    avg_target = next((r.avg_target_price for r in records if r.avg_target_price), None)
    if avg_target is None:
        targets = [r.target_price for r in records if r.target_price]
        avg_target = sum(targets) / len(targets) if targets else None

    reports = [r.report_price for r in records if r.report_price]
    avg_report = sum(reports) / len(reports) if reports else None

    return Consensus(
        total=buy + hold + sell,
        buy=buy,
        hold=hold,
        sell=sell,
        avg_target_price=avg_target,
        avg_report_price=avg_report,
    )
