"""Async VNDirect client with bounded concurrency and retry logic."""

import asyncio
import logging
import os
import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, TypeVar

import pandas as pd
import pytz
import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout

from vnstock_eval.analysis.consensus import lookback_start, parse_recommendations
from vnstock_eval.analysis.models import RecommendationRecord
from vnstock_eval.analysis.settings import RATIO_CODES, VIETNAM_TZ
from vnstock_eval.utils.ohlcv import filter_valid_bars, standardize_ohlcv
from vnstock_eval.utils.validators import FetchParams, parse_ratio_set

logger = logging.getLogger(__name__)

_base_url = os.environ.get("VNDIRECT_BASE_URL", "https://api-finfo.vndirect.com.vn").rstrip("/")
_timeout = float(os.environ.get("VNDIRECT_TIMEOUT", "15"))
_headers = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0",
}

# Bounded concurrency for VNDirect calls
_max_workers = int(os.environ.get("VNDIRECT_MAX_WORKERS", "4"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Retry configuration
_max_retries = int(os.environ.get("VNDIRECT_MAX_RETRIES", "3"))
_base_delay = float(os.environ.get("VNDIRECT_BASE_DELAY", "1.0"))  # seconds
_max_delay = float(os.environ.get("VNDIRECT_MAX_DELAY", "30.0"))  # seconds

# Shutdown coordination
shutdown_event = asyncio.Event()

T = TypeVar("T")


class VNDirectError(Exception):
    """Base error for VNDirect data access."""


class ServerShuttingDownError(VNDirectError):
    """Raised when server is shutting down."""


class VNDirectRetryError(VNDirectError):
    """Raised when VNDirect fails after all retries."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


def _is_retryable_error(error: Exception) -> bool:
    """Transient errors: rate limiting, server errors, connection drops and timeouts."""
    if isinstance(error, HTTPError) and error.response is not None:
        status_code = error.response.status_code
        return status_code == 429 or 500 <= status_code < 600

    if isinstance(error, (RequestsConnectionError, Timeout)):
        return True

    error_str = str(error).lower()
    retryable_patterns = [
        "rate limit",
        "too many requests",
        "connection",
        "timed out",
        "temporary",
    ]
    return any(pattern in error_str for pattern in retryable_patterns)


def _calculate_backoff(attempt: int) -> float:
    """Calculate delay with exponential backoff and jitter."""
    # Exponential backoff: base_delay * 2^attempt
    delay = _base_delay * (2**attempt)
    # Add jitter (+/-25%)
    jitter = delay * 0.25 * (2 * random.random() - 1)
    delay = delay + jitter
    # Cap at max delay
    return min(delay, _max_delay)


@dataclass
class RetryAttempt:
    """Record of a single retry attempt for provenance tracking."""

    attempt: int
    ok: bool
    error: str | None = None
    backoff_s: float | None = None


@dataclass
class RetryResult:
    """Result of a retry operation with provenance tracking."""

    result: Any
    attempts: int
    total_backoff_seconds: float
    source: str = "vndirect"
    retry_trace: list[RetryAttempt] | None = None

    def to_provenance(self) -> dict[str, Any]:
        """Convert to provenance fields for the data_provenance block."""
        prov: dict[str, Any] = {
            "source": self.source,
            "attempts": self.attempts,
            "total_backoff_seconds": self.total_backoff_seconds,
        }
        if self.retry_trace:
            prov["retry_trace"] = [
                {
                    "attempt": t.attempt,
                    "ok": t.ok,
                    **({"error": t.error} if t.error else {}),
                    **({"backoff_s": t.backoff_s} if t.backoff_s else {}),
                }
                for t in self.retry_trace[-3:]
            ]
        return prov


async def _retry_with_backoff(
    operation_name: str,
    sync_func: Callable[[], T],
    max_retries: int = _max_retries,
) -> RetryResult:
    """
    Execute a synchronous function in the executor with retry logic.

    Args:
        operation_name: Name for logging (e.g., "fetch_stock_prices(FPT)")
        sync_func: Synchronous function to execute
        max_retries: Maximum number of retry attempts

    Returns:
        RetryResult with result and provenance info

    Raises:
        VNDirectRetryError: If all retries exhausted
        ServerShuttingDownError: If server is shutting down
    """
    last_error: Exception | None = None
    total_backoff: float = 0.0
    retry_trace: list[RetryAttempt] = []

    for attempt in range(max_retries + 1):
        if shutdown_event.is_set():
            raise ServerShuttingDownError("Server is shutting down")

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(_executor, sync_func)
            retry_trace.append(RetryAttempt(attempt=attempt + 1, ok=True))
            return RetryResult(
                result=result,
                attempts=attempt + 1,
                total_backoff_seconds=round(total_backoff, 2),
                retry_trace=retry_trace if len(retry_trace) > 1 else None,  # Only include if retries happened
            )
        except Exception as e:
            last_error = e
            retry_trace.append(RetryAttempt(attempt=attempt + 1, ok=False, error=type(e).__name__))

            if not _is_retryable_error(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    f"{operation_name}: Failed after {attempt + 1} attempts. Last error: {e}"
                )
                raise VNDirectRetryError(
                    f"Failed after {attempt + 1} attempts: {e}",
                    last_error=last_error,
                ) from e

            delay = _calculate_backoff(attempt)
            total_backoff += delay
            retry_trace[-1].backoff_s = round(delay, 2)
            logger.info(
                f"{operation_name}: Attempt {attempt + 1} failed ({e}). "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise VNDirectRetryError(
        f"Failed after {max_retries + 1} attempts",
        last_error=last_error,
    )


def _get_json(path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
    """GET a VNDirect endpoint and return its `data` array."""
    response = requests.get(
        f"{_base_url}{path}",
        params=params,
        headers=_headers,
        timeout=_timeout,
    )
    response.raise_for_status()
    payload = response.json()
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise VNDirectError(f"Unexpected response shape from {path}: missing 'data' list")
    return data


def get_vietnam_today(now: datetime | None = None) -> date:
    """Current calendar day on the Vietnamese exchanges."""
    tz = pytz.timezone(VIETNAM_TZ)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = tz.localize(now)
    else:
        now = now.astimezone(tz)
    return now.date()


async def fetch_stock_prices_with_provenance(params: FetchParams) -> tuple[pd.DataFrame, dict[str, Any]]:
    """
    Fetch daily bars with bounded concurrency and retry logic.

    Standardization, per-bar unit normalization and validation happen here
    (single place) before both evaluation and cache.

    Args:
        params: Fetch parameters

    Returns:
        Tuple of (validated price frame ascending by date, provenance dict)

    Raises:
        ServerShuttingDownError: If server is shutting down
        VNDirectRetryError: If all retries exhausted for retryable errors
        ValueError: If no usable bars are returned for the symbol
    """
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    def _fetch() -> pd.DataFrame:
        records = _get_json("/v4/stock_prices", params.to_query())
        if not records:
            raise ValueError(f"No data returned for {params.symbol}")
        df = standardize_ohlcv(records)
        valid = filter_valid_bars(df, get_vietnam_today())
        dropped = len(df) - len(valid)
        if dropped:
            logger.debug(f"fetch_stock_prices({params.symbol}): dropped {dropped} of {len(df)} bars")
        if valid.empty:
            raise ValueError(f"No valid bars returned for {params.symbol}")
        return valid

    async with _fetch_semaphore:
        retry_result = await _retry_with_backoff(
            f"fetch_stock_prices({params.symbol})",
            _fetch,
        )
        return retry_result.result, retry_result.to_provenance()


async def fetch_stock_prices(params: FetchParams) -> pd.DataFrame:
    """Fetch validated daily bars. See fetch_stock_prices_with_provenance."""
    df, _ = await fetch_stock_prices_with_provenance(params)
    return df


async def fetch_ratios(symbol: str, codes: tuple[str, ...] = RATIO_CODES) -> dict[str, float]:
    """
    Fetch the latest financial ratios for a symbol.

    Returns:
        Ratio code -> value; absent or null ratios are missing keys

    Raises:
        ServerShuttingDownError: If server is shutting down
        VNDirectRetryError: If all retries exhausted for retryable errors
    """
    symbol = FetchParams(symbol).symbol
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    query = {
        "filter": ",".join(f"ratioCode:{code}" for code in codes),
        "where": f"code:{symbol}",
    }

    def _fetch() -> dict[str, float]:
        return parse_ratio_set(_get_json("/v4/ratios/latest", query))

    async with _fetch_semaphore:
        retry_result = await _retry_with_backoff(f"fetch_ratios({symbol})", _fetch)
        return retry_result.result


async def fetch_recommendations(
    symbol: str,
    start_date: date | None = None,
    size: int = 100,
) -> list[RecommendationRecord]:
    """
    Fetch analyst recommendations, newest first.

    Args:
        symbol: Ticker
        start_date: Earliest report date (default: 12 months before today in Vietnam)
        size: Maximum number of records

    Returns:
        Parsed records with prices normalized to VND

    Raises:
        ServerShuttingDownError: If server is shutting down
        VNDirectRetryError: If all retries exhausted for retryable errors
    """
    symbol = FetchParams(symbol).symbol
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    if start_date is None:
        start_date = lookback_start(get_vietnam_today())

    query = {
        "q": f"code:{symbol}~reportDate:gte:{start_date.isoformat()}",
        "size": size,
        "sort": "reportDate:DESC",
    }

    def _fetch() -> list[RecommendationRecord]:
        return parse_recommendations(_get_json("/v4/recommendations", query))

    async with _fetch_semaphore:
        retry_result = await _retry_with_backoff(f"fetch_recommendations({symbol})", _fetch)
        return retry_result.result


def get_market_state(tz: str = VIETNAM_TZ) -> dict[str, str]:
    """
    Determine HOSE market state. Clock-based only (no holiday calendar).

    Args:
        tz: Timezone (default: Asia/Ho_Chi_Minh)

    Returns:
        Dict with state, method, and checked_at timestamp
    """
    now = datetime.now(pytz.timezone(tz))

    # Weekends
    if now.weekday() >= 5:
        state = "closed"
    else:
        time_minutes = now.hour * 60 + now.minute

        if time_minutes < 9 * 60:  # Before 9:00
            state = "pre_open"
        elif time_minutes < 11 * 60 + 30:  # 9:00 - 11:30
            state = "morning"
        elif time_minutes < 13 * 60:  # 11:30 - 13:00
            state = "lunch_break"
        elif time_minutes < 14 * 60 + 45:  # 13:00 - 14:45
            state = "afternoon"
        elif time_minutes < 15 * 60:  # 14:45 - 15:00
            state = "atc"
        else:
            state = "closed"

    return {
        "state": state,
        "method": "clock_only_no_holidays",
        "checked_at": now.isoformat(),
    }


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
