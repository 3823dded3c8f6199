"""Batch screening tool."""

import asyncio
import logging
from time import perf_counter
from typing import Any

from vnstock_eval.analysis.settings import RATIO_PB, RATIO_PE, RATIO_ROE
from vnstock_eval.tools.evaluate import evaluate
from vnstock_eval.utils.normalize import sanitize_nan_inf
from vnstock_eval.utils.provenance import build_error_response, build_meta
from vnstock_eval.utils.validators import DEFAULT_SIZE

logger = logging.getLogger(__name__)

MAX_SCREEN_SYMBOLS = 30


def _passes(response: dict[str, Any]) -> bool:
    # Short-term entry with no long-term objection
    return response["short_term"]["signal"] == "BUY" and response["long_term"]["signal"] != "SELL"


def _summary(response: dict[str, Any]) -> dict[str, Any]:
    short_term = response["short_term"]
    long_term = response["long_term"]
    ratios = response.get("ratios", {})
    return {
        "symbol": response["symbol"],
        "current_price": short_term["current_price"],
        "short_term": {
            "signal": short_term["signal"],
            "confidence": short_term["confidence"],
            "net_score": short_term["net_score"],
            "buy_price": short_term["buy_price"],
            "cut_loss_price": short_term["cut_loss_price"],
        },
        "long_term": {
            "signal": long_term["signal"],
            "confidence": long_term["confidence"],
            "net_score": long_term["net_score"],
            "coverage_pct": long_term["coverage_pct"],
        },
        "pe": ratios.get(RATIO_PE),
        "pb": ratios.get(RATIO_PB),
        "roe": ratios.get(RATIO_ROE),
    }


async def screen(symbols: list[str], size: int = DEFAULT_SIZE) -> dict[str, Any]:
    """
    Evaluate several symbols concurrently and keep the short-term entries.

    A symbol passes when its short-term signal is BUY and its long-term
    signal is not SELL. Passing symbols are ranked by long-term net score,
    then short-term net score. A symbol that fails to evaluate is reported
    under errors without affecting the others.

    Args:
        symbols: Tickers to screen (1-30)
        size: Number of daily sessions per symbol (30-1000, default 270)

    Returns:
        Dict with passed (ranked), rejected and errors lists
    """
    start_time = perf_counter()

    if not symbols:
        return build_error_response(
            error_type="invalid_parameters",
            message="symbols list cannot be empty",
        )

    # Normalize symbols, first occurrence wins
    normalized: list[str] = []
    for s in symbols:
        symbol = str(s).upper().strip()
        if symbol not in normalized:
            normalized.append(symbol)

    if len(normalized) > MAX_SCREEN_SYMBOLS:
        return build_error_response(
            error_type="invalid_parameters",
            message=f"At most {MAX_SCREEN_SYMBOLS} symbols per screen, got {len(normalized)}",
        )

    results = await asyncio.gather(
        *(evaluate(symbol, size) for symbol in normalized),
        return_exceptions=True,
    )

    passed: list[dict[str, Any]] = []
    rejected: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
    for symbol, result in zip(normalized, results):
        if isinstance(result, BaseException):
            logger.warning(f"screen: evaluate({symbol}) failed: {result}")
            errors.append({"symbol": symbol, "error_type": "data_unavailable", "message": str(result)})
        elif result.get("error"):
            errors.append({"symbol": symbol, "error_type": result["error_type"], "message": result["message"]})
        elif _passes(result):
            passed.append(_summary(result))
        else:
            rejected.append(
                {
                    "symbol": result["symbol"],
                    "short_term_signal": result["short_term"]["signal"],
                    "long_term_signal": result["long_term"]["signal"],
                }
            )

    passed.sort(key=lambda x: (x["long_term"]["net_score"], x["short_term"]["net_score"]), reverse=True)

    duration_ms = (perf_counter() - start_time) * 1000

    response: dict[str, Any] = {
        "meta": build_meta("screen", duration_ms),
        "symbol_count": len(normalized),
        "passed": passed,
        "rejected": rejected,
        "errors": errors,
    }

    return sanitize_nan_inf(response)
