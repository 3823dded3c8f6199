"""OHLCV data standardization and validation utilities."""

import io
import logging
from datetime import date

import numpy as np
import pandas as pd

from vnstock_eval.utils.normalize import PriceUnit, detect_price_unit

logger = logging.getLogger(__name__)

# Absolute tolerance (currency units) applied on both sides of OHLC comparisons
OHLC_TOLERANCE = 0.01

PRICE_COLS = ["open", "high", "low", "close"]
ADJUSTED_COLS = ["ad_open", "ad_high", "ad_low", "ad_close"]
CANONICAL_COLS = [
    "date",
    *PRICE_COLS,
    *ADJUSTED_COLS,
    "volume",
    "value",
    "change",
    "pct_change",
]

# VNDirect field name -> canonical column
_FIELD_MAP = {
    "date": "date",
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "adOpen": "ad_open",
    "adHigh": "ad_high",
    "adLow": "ad_low",
    "adClose": "ad_close",
    "nmVolume": "volume",
    "nmValue": "value",
    "change": "change",
    "pctChange": "pct_change",
}


def standardize_ohlcv(records: list[dict] | pd.DataFrame, normalize_units: bool = True) -> pd.DataFrame:
    """
    Standardize raw VNDirect price records to a consistent schema.

    Output columns (always, in this order): date, open, high, low, close,
    ad_open, ad_high, ad_low, ad_close, volume, value, change, pct_change.
    Missing adjusted prices fall back to the raw prices. Rows are sorted
    ascending by date and duplicate dates keep the last record.

    Args:
        records: Raw records (camelCase VNDirect fields) or a DataFrame
        normalize_units: Convert each bar's prices to VND independently

    Returns:
        Standardized DataFrame with consistent schema
    """
    df = pd.DataFrame(records).copy() if not isinstance(records, pd.DataFrame) else records.copy()

    df = df.rename(columns={k: v for k, v in _FIELD_MAP.items() if k in df.columns})

    for col in CANONICAL_COLS:
        if col not in df.columns:
            df[col] = np.nan

    df = df[CANONICAL_COLS]

    for col in CANONICAL_COLS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)

    for raw_col, adj_col in zip(PRICE_COLS, ADJUSTED_COLS):
        df[adj_col] = df[adj_col].fillna(df[raw_col])

    dates = pd.to_datetime(df["date"], format="mixed", errors="coerce")
    df = df[dates.notna()].copy()
    df["date"] = dates[dates.notna()].dt.strftime("%Y-%m-%d")

    df = df.sort_values("date", kind="stable")
    df = df.drop_duplicates(subset="date", keep="last").reset_index(drop=True)

    if normalize_units and len(df) > 0:
        df = _normalize_bar_units(df)

    return df


def _normalize_bar_units(df: pd.DataFrame) -> pd.DataFrame:
    """Scale each bar's raw and adjusted prices to VND, one bar at a time."""
    df = df.copy()
    # Raw change moves with raw prices
    for cols, scaled in ((PRICE_COLS, PRICE_COLS + ["change"]), (ADJUSTED_COLS, ADJUSTED_COLS)):
        in_thousands = df[cols].apply(
            lambda row: detect_price_unit(row.tolist()) is PriceUnit.THOUSANDS,
            axis=1,
        ).astype(bool)
        if in_thousands.any():
            df.loc[in_thousands, scaled] = df.loc[in_thousands, scaled] * 1000
    return df


def validate_ohlcv(df: pd.DataFrame, columns: list[str] | None = None) -> pd.Series:
    """
    Flag bars satisfying low <= min(open, close) <= max(open, close) <= high.

    All prices must be strictly positive. Comparisons allow OHLC_TOLERANCE
    on both sides.

    Args:
        df: Standardized price frame
        columns: open/high/low/close column names (default: raw prices)

    Returns:
        Boolean Series, True where the bar is valid
    """
    open_col, high_col, low_col, close_col = columns or PRICE_COLS
    o, h, l, c = (pd.to_numeric(df[col], errors="coerce") for col in (open_col, high_col, low_col, close_col))

    positive = (o > 0) & (h > 0) & (l > 0) & (c > 0)
    body_low = pd.concat([o, c], axis=1).min(axis=1)
    body_high = pd.concat([o, c], axis=1).max(axis=1)

    ordered = (
        (l <= body_low + OHLC_TOLERANCE)
        & (body_low <= body_high + OHLC_TOLERANCE)
        & (body_high <= h + OHLC_TOLERANCE)
        & (l <= h + OHLC_TOLERANCE)
    )

    return (positive & ordered).fillna(False).astype(bool)


def filter_valid_bars(df: pd.DataFrame, today: date) -> pd.DataFrame:
    """
    Drop bars that fail OHLC validation (raw or adjusted) or are future-dated.

    Args:
        df: Standardized price frame
        today: Current exchange-local calendar day

    Returns:
        Filtered frame with a fresh index
    """
    if len(df) == 0:
        return df

    valid = validate_ohlcv(df) & validate_ohlcv(df, ADJUSTED_COLS)
    not_future = pd.to_datetime(df["date"], format="%Y-%m-%d").dt.date <= today

    dropped_invalid = int((~valid).sum())
    dropped_future = int((valid & ~not_future).sum())
    if dropped_invalid:
        logger.warning(f"Dropped {dropped_invalid} bar(s) failing OHLC validation")
    if dropped_future:
        logger.debug(f"Dropped {dropped_future} future-dated bar(s) after {today.isoformat()}")

    return df[valid & not_future].reset_index(drop=True)


def df_to_csv(df: pd.DataFrame) -> str:
    """Convert to CSV string for cache/resource."""
    return df.to_csv(index=False)


def csv_to_df(csv_text: str) -> pd.DataFrame:
    """Rebuild a standardized frame from cached CSV."""
    df = pd.read_csv(io.StringIO(csv_text), dtype={"date": str})
    for col in CANONICAL_COLS:
        if col not in df.columns:
            df[col] = np.nan
    return df[CANONICAL_COLS]
