"""Technical indicator calculations."""

import math
from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class BollingerBands:
    """Parallel upper/middle/lower band series."""

    upper: pd.Series
    middle: pd.Series
    lower: pd.Series

    def at(self, index: int) -> dict[str, float] | None:
        """Band values at a position, or None if any band is undefined there."""
        values = {
            "upper": self.upper.iloc[index],
            "middle": self.middle.iloc[index],
            "lower": self.lower.iloc[index],
        }
        if any(pd.isna(v) for v in values.values()):
            return None
        return {k: float(v) for k, v in values.items()}


@dataclass(frozen=True)
class PivotPoints:
    """Woodie pivot levels for the next session."""

    pivot: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def calculate_sma(prices: pd.Series, period: int) -> pd.Series:
    """
    Calculate Simple Moving Average.

    A window containing any NaN yields NaN at that index (no zero-fill).

    Args:
        prices: Price series (typically adjusted close prices)
        period: Number of periods for the average

    Returns:
        SMA series, NaN for the first (period - 1) values
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")
    prices = pd.to_numeric(prices, errors="coerce").astype(float)
    return prices.rolling(window=period, min_periods=period).mean()


def calculate_std_dev(prices: pd.Series, period: int) -> pd.Series:
    """
    Calculate rolling population standard deviation (divides by period).

    Args:
        prices: Price series
        period: Window length

    Returns:
        Standard deviation series, NaN where the window is incomplete
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")
    prices = pd.to_numeric(prices, errors="coerce").astype(float)
    return prices.rolling(window=period, min_periods=period).std(ddof=0)


def calculate_std_dev_at(prices: pd.Series, period: int, index: int) -> float:
    """Population standard deviation of the trailing window ending at index."""
    if index < period - 1 or index >= len(prices):
        return math.nan
    window = pd.to_numeric(prices.iloc[index - period + 1 : index + 1], errors="coerce")
    if window.isna().any():
        return math.nan
    return float(window.std(ddof=0))


def calculate_bollinger_bands(
    prices: pd.Series,
    period: int = 20,
    std_dev_multiplier: float = 2.0,
) -> BollingerBands:
    """
    Calculate Bollinger Bands.

    Args:
        prices: Price series (typically adjusted close prices)
        period: Period for the middle band SMA (default: 20)
        std_dev_multiplier: Band width in population standard deviations (default: 2)

    Returns:
        BollingerBands with upper/middle/lower series
    """
    middle = calculate_sma(prices, period)
    sigma = calculate_std_dev(prices, period)

    return BollingerBands(
        upper=middle + std_dev_multiplier * sigma,
        middle=middle,
        lower=middle - std_dev_multiplier * sigma,
    )


def calculate_woodie_pivots(high: float, low: float, close: float) -> PivotPoints | None:
    """
    Calculate Woodie pivot points from the previous period's high/low/close.

    Args:
        high: Previous period high
        low: Previous period low
        close: Previous period close

    Returns:
        PivotPoints rounded to 2 decimals, or None if the inputs are not a
        valid bar (non-positive, NaN, low > high, close outside [low, high])
    """
    values = (high, low, close)
    if any(v is None or not np.isfinite(v) or v <= 0 for v in values):
        return None
    if low > high or not (low <= close <= high):
        return None

    pivot = (high + low + 2 * close) / 4

    return PivotPoints(
        pivot=round(pivot, 2),
        r1=round(2 * pivot - low, 2),
        r2=round(pivot + (high - low), 2),
        r3=round(high + 2 * (pivot - low), 2),
        s1=round(2 * pivot - high, 2),
        s2=round(pivot - (high - low), 2),
        s3=round(low - 2 * (high - pivot), 2),
    )


def calculate_pct_change(prices: pd.Series, periods: int) -> float | None:
    """
    Calculate percent change over a number of periods.

    Args:
        prices: Price series
        periods: Number of periods to look back

    Returns:
        Change in percent (4.0 = +4%), or None if insufficient data
    """
    if len(prices) < periods + 1:
        return None

    current = prices.iloc[-1]
    past = prices.iloc[-periods - 1]

    if pd.isna(current) or pd.isna(past) or past <= 0:
        return None

    return float((current - past) / past * 100)


def calculate_volume_ratio(volume: pd.Series, period: int = 10) -> float | None:
    """
    Ratio of the latest volume to the trailing average (latest bar included).

    Returns:
        Ratio (1.5 = 150% of average), or None if insufficient data
    """
    if len(volume) < period:
        return None

    window = pd.to_numeric(volume.tail(period), errors="coerce")
    if window.isna().any():
        return None

    avg = float(window.mean())
    current = float(window.iloc[-1])
    if avg <= 0:
        return None

    return current / avg


def calculate_range_position(prices: pd.Series) -> float | None:
    """
    Position of the latest price within the window's min/max range.

    Returns:
        0.0 at the window low, 1.0 at the window high, None if undefined
    """
    clean = pd.to_numeric(prices, errors="coerce").dropna()
    if len(clean) < 2:
        return None

    current = float(clean.iloc[-1])
    high = float(clean.max())
    low = float(clean.min())

    if high == low:
        return None

    return (current - low) / (high - low)


def band_position(price: float, lower: float, upper: float) -> float | None:
    """Position of price within the band, clamped to [0, 1]."""
    width = upper - lower
    if not np.isfinite(width) or width <= 0:
        return None
    return min(max((price - lower) / width, 0.0), 1.0)
