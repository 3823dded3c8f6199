"""Pytest configuration and fixtures."""

from collections.abc import Sequence

import numpy as np
import pandas as pd
import pytest

from vnstock_eval.analysis.consensus import parse_recommendations
from vnstock_eval.analysis.models import RecommendationRecord


def make_price_frame(
    closes: Sequence[float],
    volumes: Sequence[float] | None = None,
    start: str = "2024-01-01",
) -> pd.DataFrame:
    """Standardized price frame with a 1% high/low spread around each close."""
    closes = [float(c) for c in closes]
    if volumes is None:
        volumes = [1000.0] * len(closes)
    dates = pd.bdate_range(start, periods=len(closes)).strftime("%Y-%m-%d")
    close = pd.Series(closes)
    df = pd.DataFrame(
        {
            "date": list(dates),
            "open": close,
            "high": close * 1.01,
            "low": close * 0.99,
            "close": close,
            "volume": [float(v) for v in volumes],
            "value": np.nan,
            "change": np.nan,
            "pct_change": np.nan,
        }
    )
    df["ad_open"] = df["open"]
    df["ad_high"] = df["high"]
    df["ad_low"] = df["low"]
    df["ad_close"] = df["close"]
    return df[
        [
            "date",
            "open",
            "high",
            "low",
            "close",
            "ad_open",
            "ad_high",
            "ad_low",
            "ad_close",
            "volume",
            "value",
            "change",
            "pct_change",
        ]
    ]


@pytest.fixture
def sample_price_series() -> pd.Series:
    """Sample price series for indicator testing."""
    return pd.Series(
        [100.0, 101.0, 102.0, 101.5, 103.0, 104.0, 103.5, 105.0, 106.0, 105.5,
         107.0, 108.0, 107.5, 109.0, 110.0, 109.5, 111.0, 112.0, 111.5, 113.0,
         114.0, 113.5, 115.0, 116.0, 115.5, 117.0, 118.0, 117.5, 119.0, 120.0]
    )


@pytest.fixture
def buy_setup_prices() -> pd.DataFrame:
    """
    40 sessions ending in a bullish setup.

    MA10 140.4 vs MA30 130.13 (+7.9%), Bollinger(20) position ~0.14,
    5-day +4% with 10-day -48%, volume 1.82x average, range position 0.22.
    """
    closes = [300.0] * 10 + [50.0] * 10 + [200.0] * 14 + [100.0] * 5 + [104.0]
    volumes = [1000.0] * 39 + [2000.0]
    return make_price_frame(closes, volumes)


@pytest.fixture
def sell_setup_prices() -> pd.DataFrame:
    """40 sessions declining one unit per day from 139 to 100 with a volume spike."""
    closes = [float(p) for p in range(139, 99, -1)]
    volumes = [1000.0] * 39 + [2000.0]
    return make_price_frame(closes, volumes)


@pytest.fixture
def flat_prices() -> pd.DataFrame:
    """40 sessions at a constant price and volume."""
    return make_price_frame([100.0] * 40)


@pytest.fixture
def raw_vndirect_bars() -> list[dict]:
    """VNDirect stock_prices records, newest first, prices in thousands of VND."""
    return [
        {
            "code": "FPT",
            "date": "2024-03-05",
            "open": 96.5, "high": 97.8, "low": 96.0, "close": 97.5,
            "adOpen": 96.5, "adHigh": 97.8, "adLow": 96.0, "adClose": 97.5,
            "nmVolume": 1520000.0, "nmValue": 147900000000.0,
            "change": 1.0, "pctChange": 1.04,
        },
        {
            "code": "FPT",
            "date": "2024-03-04",
            "open": 95.0, "high": 96.9, "low": 94.8, "close": 96.5,
            "adOpen": 95.0, "adHigh": 96.9, "adLow": 94.8, "adClose": 96.5,
            "nmVolume": 1310000.0, "nmValue": 125400000000.0,
            "change": 1.5, "pctChange": 1.58,
        },
        {
            "code": "FPT",
            "date": "2024-03-01",
            "open": 94.0, "high": 95.2, "low": 93.5, "close": 95.0,
            "adOpen": 94.0, "adHigh": 95.2, "adLow": 93.5, "adClose": 95.0,
            "nmVolume": 1100000.0, "nmValue": 103800000000.0,
            "change": 0.5, "pctChange": 0.53,
        },
    ]


@pytest.fixture
def raw_recommendations() -> list[dict]:
    """VNDirect recommendation records with mixed price scales and labels."""
    return [
        {
            "code": "FPT", "firm": "SSI", "type": "BUY", "reportDate": "2024-02-20",
            "reportPrice": 95.0, "targetPrice": 118000.0, "avgTargetPrice": 115000.0,
        },
        {
            "code": "FPT", "firm": "VCSC", "type": "Mua", "reportDate": "2024-01-15",
            "reportPrice": 90000.0, "targetPrice": 112.0, "avgTargetPrice": 115.0,
        },
        {
            "code": "FPT", "firm": "MBS", "type": "outperform", "reportDate": "2023-11-02",
            "reportPrice": 88500.0, "targetPrice": 110000.0, "avgTargetPrice": 115000.0,
        },
        {
            "code": "FPT", "firm": "BSC", "type": "Nắm giữ", "reportDate": "2023-09-10",
            "reportPrice": 86.0, "targetPrice": 95.0, "avgTargetPrice": 115.0,
        },
    ]


@pytest.fixture
def recommendations(raw_recommendations: list[dict]) -> list[RecommendationRecord]:
    """Parsed recommendation records (3 BUY, 1 HOLD)."""
    return parse_recommendations(raw_recommendations)


@pytest.fixture
def full_ratios() -> dict[str, float]:
    """Ratio set with every long-term factor in its most bullish band."""
    return {
        "PRICE_TO_EARNINGS": 8.0,
        "PRICE_TO_BOOK": 0.9,
        "ROAE_TR_AVG5Q": 0.25,
        "DIVIDEND_YIELD": 0.06,
        "MARKETCAP": 2.0e13,
        "FREEFLOAT": 0.4,
    }


@pytest.fixture
def price_frame():
    """Factory building a standardized price frame from closes (and volumes)."""
    return make_price_frame
