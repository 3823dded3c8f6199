"""Vietnamese Stock Evaluation MCP Server using FastMCP."""

import asyncio
import json
import logging
import os

from fastmcp import FastMCP

from vnstock_eval import SCHEMA_VERSION, SERVER_VERSION
from vnstock_eval.data.cache import price_cache
from vnstock_eval.data.vndirect_client import shutdown_executor
from vnstock_eval.tools import analyst_consensus, evaluate, screen, technicals
from vnstock_eval.utils.validators import DEFAULT_SIZE, FetchParams

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(
    name="vnstock-eval",
)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def evaluate_stock(symbol: str, size: int = DEFAULT_SIZE, force_refresh: bool = False) -> str:
    """
    Evaluate a Vietnamese stock with short-term and long-term BUY/HOLD/SELL signals.

    Short-term: MA10/MA30 crossover, Bollinger position, 5/10-day momentum,
    volume confirmation and range position, with a Woodie S2 buy price and
    3.5% cut-loss on BUY. Long-term: analyst consensus and upside, P/E, P/B,
    ROE, dividend yield, market cap and free float.

    Args:
        symbol: Ticker on HOSE/HNX/UPCOM (e.g. FPT, VNM, TCB)
        size: Number of daily sessions to analyse (30-1000, default 270)
        force_refresh: Bypass the 5-minute price cache

    Returns:
        JSON with both evaluations, ordered reasons and data provenance
    """
    result = await evaluate(symbol=symbol, size=size, force_refresh=force_refresh)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_technicals(symbol: str) -> str:
    """
    Calculate the technical indicators behind the short-term evaluation.

    Includes MA10/MA30, Bollinger bands (20/2 and 30/3), Woodie pivot
    points, 5/10-day momentum, volume ratio and range position.

    Args:
        symbol: Ticker symbol

    Returns:
        JSON with technical indicators and rule-based signals
    """
    result = await technicals(symbol=symbol)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_analyst_consensus(symbol: str, months: int = 12) -> str:
    """
    Tally analyst recommendations and average target price.

    Args:
        symbol: Ticker symbol
        months: Lookback window in months (default: 12)

    Returns:
        JSON with BUY/HOLD/SELL counts, average prices in VND and the reports
    """
    result = await analyst_consensus(symbol=symbol, months=months)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def screen_stocks(symbols: list[str], size: int = DEFAULT_SIZE) -> str:
    """
    Evaluate up to 30 stocks at once and keep the short-term BUY candidates.

    A stock passes when the short-term signal is BUY and the long-term
    signal is not SELL. Passing stocks are ranked by long-term score and
    include P/E, P/B and ROE.

    Args:
        symbols: Tickers to screen (e.g. ["FPT", "VNM", "TCB"])
        size: Number of daily sessions per stock (30-1000, default 270)

    Returns:
        JSON with ranked passes, rejections and per-symbol errors
    """
    result = await screen(symbols=symbols, size=size)
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# RESOURCES
# ============================================================================


@mcp.resource("prices://{symbol}/{size}")
def get_cached_prices(symbol: str, size: str) -> str:
    """
    Get cached daily bars as CSV.

    Must call evaluate_stock or get_technicals first to populate the cache.

    Args:
        symbol: Ticker symbol
        size: Number of sessions the bars were fetched with

    Returns:
        CSV with date, raw and adjusted OHLC, volume, value and change columns
    """
    try:
        params = FetchParams(symbol=symbol, size=int(size))
    except ValueError as e:
        return f"Error: {e}"

    csv_text = price_cache.get_csv(params.to_uri())
    if csv_text is None:
        return f"Resource not cached. Call evaluate_stock('{params.symbol}', size={params.size}) first."
    return csv_text


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Vietnamese Stock Evaluation MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    try:
        mcp.run()
    finally:
        asyncio.run(shutdown_executor())


if __name__ == "__main__":
    main()
