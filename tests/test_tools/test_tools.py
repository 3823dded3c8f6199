"""Tests for the MCP tool functions with the VNDirect client mocked out."""

import asyncio
import importlib
import json
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from vnstock_eval.analysis.models import RecommendationRecord
from vnstock_eval.data.cache import PriceCache
from vnstock_eval.data.vndirect_client import VNDirectRetryError
from vnstock_eval.tools import analyst_consensus, evaluate, screen, technicals

# The package re-exports the tool functions under the submodule names
evaluate_module = importlib.import_module("vnstock_eval.tools.evaluate")
consensus_module = importlib.import_module("vnstock_eval.tools.consensus")
screen_module = importlib.import_module("vnstock_eval.tools.screen")


@pytest.fixture
def isolated_cache(tmp_path):
    """Point the tools at an empty on-disk cache."""
    cache = PriceCache(str(tmp_path), default_ttl=300)
    with patch.object(evaluate_module, "price_cache", cache):
        yield cache
    cache.cache.close()


def _price_fetcher(df):
    """AsyncMock returning the frame with fresh provenance on every call."""
    return AsyncMock(side_effect=lambda params: (df.copy(), {"source": "vndirect", "attempts": 1}))


@pytest.fixture
def mocked_vndirect(isolated_cache, buy_setup_prices, full_ratios, recommendations):
    """Mock all three VNDirect fetches used by evaluate."""
    fetch_prices = _price_fetcher(buy_setup_prices)
    with (
        patch.object(evaluate_module, "fetch_stock_prices_with_provenance", fetch_prices),
        patch.object(evaluate_module, "fetch_ratios", AsyncMock(return_value=full_ratios)),
        patch.object(evaluate_module, "fetch_recommendations", AsyncMock(return_value=recommendations)),
    ):
        yield fetch_prices


class TestEvaluateTool:
    """Tests for the evaluate tool."""

    def test_response_shape(self, mocked_vndirect, buy_setup_prices) -> None:
        """Both evaluations, provenance and meta are present."""
        response = asyncio.run(evaluate("fpt"))

        assert response["symbol"] == "FPT"
        assert response["as_of"] == buy_setup_prices["date"].iloc[-1]
        assert response["meta"]["tool"] == "evaluate"
        assert response["short_term"]["signal"] == "BUY"
        assert response["short_term"]["buy_price"] == pytest.approx(101.92)
        assert response["long_term"]["signal"] == "BUY"
        assert response["long_term"]["consensus"]["buy"] == 3
        assert response["warnings"] == []

        price_prov = response["data_provenance"]["price"]
        assert price_prov["source"] == "vndirect"
        assert price_prov["resource_uri"] == "prices://FPT/270"
        assert price_prov["rows"] == 40
        assert response["data_provenance"]["recommendations"]["records"] == 4

    def test_price_provenance_fields(self, mocked_vndirect, buy_setup_prices) -> None:
        """Bar range, exchange timezone, unit and market state are reported."""
        market = {"state": "closed", "method": "clock", "checked_at": "2024-03-02T10:00:00+07:00"}
        with patch.object(evaluate_module, "get_market_state", return_value=market):
            response = asyncio.run(evaluate("FPT"))

        price_prov = response["data_provenance"]["price"]
        assert price_prov["bar_timezone"] == "Asia/Ho_Chi_Minh"
        assert price_prov["price_unit"] == "VND"
        assert price_prov["first_bar_date"] == buy_setup_prices["date"].iloc[0]
        assert price_prov["last_bar_date"] == buy_setup_prices["date"].iloc[-1]
        assert price_prov["market_state"] == "closed"
        assert price_prov["market_state_method"] == "clock"
        assert price_prov["attempts"] == 1

    def test_ratio_snapshot_surfaced(self, mocked_vndirect, full_ratios) -> None:
        """Every fetched ratio is returned, including the unscored ones."""
        with patch.object(
            evaluate_module,
            "fetch_ratios",
            AsyncMock(return_value={**full_ratios, "ROAA_TR_AVG5Q": 0.12, "EPS_TR": 5200.0, "BVPS_CR": 28000.0}),
        ):
            response = asyncio.run(evaluate("FPT"))

        assert response["ratios"]["PRICE_TO_EARNINGS"] == 8.0
        assert response["ratios"]["ROAA_TR_AVG5Q"] == 0.12
        assert response["ratios"]["EPS_TR"] == 5200.0
        assert response["ratios"]["BVPS_CR"] == 28000.0
        assert response["data_provenance"]["ratios"]["codes_missing"] == []

    def test_recommendations_fetched_with_lookback(self, mocked_vndirect) -> None:
        """Reports are requested from 12 months before today in Vietnam."""
        with patch.object(evaluate_module, "get_vietnam_today", return_value=date(2024, 3, 1)):
            response = asyncio.run(evaluate("FPT"))

        evaluate_module.fetch_recommendations.assert_awaited_once_with("FPT", start_date=date(2023, 3, 1))
        assert response["data_provenance"]["recommendations"]["start_date"] == "2023-03-01"

    def test_json_serializable(self, mocked_vndirect) -> None:
        """Test response contains no NaN/Inf."""
        json.dumps(asyncio.run(evaluate("FPT")), allow_nan=False)

    def test_second_call_served_from_cache(self, mocked_vndirect) -> None:
        """Prices are fetched once and then read from the cache."""
        asyncio.run(evaluate("FPT"))
        response = asyncio.run(evaluate("FPT"))

        assert mocked_vndirect.await_count == 1
        assert response["data_provenance"]["price"]["source"] == "cache"
        assert response["short_term"]["signal"] == "BUY"

    def test_force_refresh_refetches(self, mocked_vndirect) -> None:
        """Test force_refresh bypasses the cache."""
        asyncio.run(evaluate("FPT"))
        response = asyncio.run(evaluate("FPT", force_refresh=True))

        assert mocked_vndirect.await_count == 2
        assert response["data_provenance"]["price"]["source"] == "vndirect"

    def test_ratio_failure_degrades(self, mocked_vndirect) -> None:
        """Missing ratios lower coverage instead of failing the call."""
        with patch.object(evaluate_module, "fetch_ratios", AsyncMock(side_effect=VNDirectRetryError("boom"))):
            response = asyncio.run(evaluate("FPT"))

        assert "error" not in response
        assert response["warnings"] == ["Ratios unavailable: boom"]
        assert response["data_provenance"]["ratios"]["warnings"] == ["Ratios unavailable: boom"]
        assert response["long_term"]["evaluated_weight"] == 45

    @pytest.mark.parametrize("symbol,size", [("FPT.VN", 270), ("FPT", 5)])
    def test_invalid_parameters(self, mocked_vndirect, symbol: str, size: int) -> None:
        """Test bad inputs are rejected before fetching."""
        response = asyncio.run(evaluate(symbol, size=size))

        assert response["error"] is True
        assert response["error_type"] == "invalid_parameters"
        mocked_vndirect.assert_not_awaited()

    def test_unknown_symbol(self, isolated_cache) -> None:
        """A ValueError from the price fetch is an invalid symbol."""
        with (
            patch.object(
                evaluate_module,
                "fetch_stock_prices_with_provenance",
                AsyncMock(side_effect=ValueError("No data returned for XYZ")),
            ),
            patch.object(evaluate_module, "fetch_ratios", AsyncMock(return_value={})),
            patch.object(evaluate_module, "fetch_recommendations", AsyncMock(return_value=[])),
        ):
            response = asyncio.run(evaluate("XYZ"))

        assert response["error_type"] == "invalid_symbol"
        assert response["symbol"] == "XYZ"

    def test_upstream_outage(self, isolated_cache) -> None:
        """Test retry exhaustion maps to data_unavailable."""
        with (
            patch.object(
                evaluate_module,
                "fetch_stock_prices_with_provenance",
                AsyncMock(side_effect=VNDirectRetryError("Failed after 4 attempts")),
            ),
            patch.object(evaluate_module, "fetch_ratios", AsyncMock(return_value={})),
            patch.object(evaluate_module, "fetch_recommendations", AsyncMock(return_value=[])),
        ):
            response = asyncio.run(evaluate("FPT"))

        assert response["error_type"] == "data_unavailable"


class TestTechnicalsTool:
    """Tests for the technicals tool."""

    def test_indicators(self, mocked_vndirect) -> None:
        """Test indicator values on the bullish setup."""
        response = asyncio.run(technicals("FPT"))

        mas = response["moving_averages"]
        assert mas["ma_10"] == pytest.approx(140.4)
        assert mas["ma_30"] == pytest.approx(130.13)
        assert mas["gap_pct"] == pytest.approx(7.89)
        assert mas["rules"]["short_above_long"]["triggered"] is True

        assert response["bollinger"]["period"] == 20
        assert response["bollinger_chart"]["period"] == 30
        assert response["bollinger_chart"]["std_dev_multiplier"] == 3.0
        assert response["pivots"]["s2"] == pytest.approx(101.92)
        assert response["momentum"] == {"change_5d_pct": 4.0, "change_10d_pct": -48.0}
        assert response["volume"]["ratio_to_avg"] == pytest.approx(1.82)
        assert response["volume"]["rules"]["volume_spike"]["triggered"] is True
        assert response["range"] == {"sessions": 40, "high": 300.0, "low": 50.0, "position": 0.216}

    def test_insufficient_data(self, isolated_cache, price_frame) -> None:
        """Fewer than 30 sessions is an error response."""
        with patch.object(evaluate_module, "fetch_stock_prices_with_provenance", _price_fetcher(price_frame([100.0] * 10))):
            response = asyncio.run(technicals("FPT"))

        assert response["error_type"] == "insufficient_data"


class TestAnalystConsensusTool:
    """Tests for the analyst_consensus tool."""

    @pytest.fixture
    def mocked_recommendations(self, recommendations):
        fetch = AsyncMock(return_value=recommendations)
        with (
            patch.object(consensus_module, "fetch_recommendations", fetch),
            patch.object(consensus_module, "get_vietnam_today", return_value=date(2024, 3, 1)),
        ):
            yield fetch

    def test_tally(self, mocked_recommendations) -> None:
        """Test counts, average target and individual reports."""
        response = asyncio.run(analyst_consensus("fpt"))

        assert response["symbol"] == "FPT"
        assert response["lookback_months"] == 12
        assert response["consensus"]["total"] == 4
        assert response["consensus"]["buy_pct"] == 75.0
        assert response["consensus"]["avg_target_price"] == 115_000.0
        assert len(response["recommendations"]) == 4
        assert response["data_provenance"]["recommendations"]["start_date"] == "2023-03-01"
        mocked_recommendations.assert_awaited_once_with("FPT", start_date=date(2023, 3, 1))

    def test_shorter_window_filters(self, mocked_recommendations) -> None:
        """A 3-month window keeps only reports since 1 December."""
        response = asyncio.run(analyst_consensus("FPT", months=3))

        assert response["consensus"]["total"] == 2
        assert [r["firm"] for r in response["recommendations"]] == ["SSI", "VCSC"]

    def test_unrecognised_type_warning(self, mocked_recommendations, recommendations) -> None:
        """Untyped reports are listed but flagged."""
        untyped = RecommendationRecord(
            firm="ABS",
            type=None,
            report_date=date(2024, 2, 1),
            report_price=95_000.0,
            target_price=None,
            avg_target_price=None,
        )
        mocked_recommendations.return_value = [*recommendations, untyped]

        response = asyncio.run(analyst_consensus("FPT"))

        assert response["consensus"]["total"] == 4
        assert len(response["recommendations"]) == 5
        assert response["data_provenance"]["recommendations"]["warnings"] == [
            "1 report(s) with unrecognised recommendation type"
        ]

    @pytest.mark.parametrize("months", [0, 61, True])
    def test_invalid_months(self, mocked_recommendations, months) -> None:
        """Test lookback outside 1-60 months is rejected."""
        response = asyncio.run(analyst_consensus("FPT", months=months))

        assert response["error_type"] == "invalid_parameters"
        mocked_recommendations.assert_not_awaited()


class TestScreenTool:
    """Tests for the screen tool."""

    WEAK_RATIOS = {"PRICE_TO_EARNINGS": 35.0, "PRICE_TO_BOOK": 4.5, "ROAE_TR_AVG5Q": -0.02}

    @pytest.fixture
    def mocked_market(self, isolated_cache, buy_setup_prices, sell_setup_prices, full_ratios, recommendations):
        """Per-symbol fetches: AAA and DDD pass, BBB and CCC are rejected, XYZ is unknown."""
        frames = {
            "AAA": buy_setup_prices,
            "BBB": sell_setup_prices,
            "CCC": buy_setup_prices,
            "DDD": buy_setup_prices,
        }
        ratios = {
            "AAA": full_ratios,
            "BBB": full_ratios,
            "CCC": self.WEAK_RATIOS,
            "DDD": {"PRICE_TO_EARNINGS": 15.0},
        }

        def fetch_prices(params):
            if params.symbol not in frames:
                raise ValueError(f"No data returned for {params.symbol}")
            return frames[params.symbol].copy(), {"source": "vndirect", "attempts": 1}

        def fetch_recs(symbol, start_date=None):
            return recommendations if symbol == "AAA" else []

        with (
            patch.object(evaluate_module, "fetch_stock_prices_with_provenance", AsyncMock(side_effect=fetch_prices)),
            patch.object(evaluate_module, "fetch_ratios", AsyncMock(side_effect=lambda symbol: ratios.get(symbol, {}))),
            patch.object(evaluate_module, "fetch_recommendations", AsyncMock(side_effect=fetch_recs)),
        ):
            yield

    def test_pass_and_reject(self, mocked_market) -> None:
        """Short-term BUY passes unless the long-term view is SELL."""
        response = asyncio.run(screen(["aaa", "BBB", "CCC"]))

        assert response["meta"]["tool"] == "screen"
        assert response["symbol_count"] == 3
        assert [p["symbol"] for p in response["passed"]] == ["AAA"]
        assert response["rejected"] == [
            {"symbol": "BBB", "short_term_signal": "SELL", "long_term_signal": "BUY"},
            {"symbol": "CCC", "short_term_signal": "BUY", "long_term_signal": "SELL"},
        ]
        assert response["errors"] == []

    def test_passed_summary(self, mocked_market) -> None:
        """Test passing rows carry both signals, entry prices and key ratios."""
        row = asyncio.run(screen(["AAA"]))["passed"][0]

        assert row["current_price"] == 104.0
        assert row["short_term"]["signal"] == "BUY"
        assert row["short_term"]["buy_price"] == pytest.approx(101.92)
        assert row["short_term"]["cut_loss_price"] == pytest.approx(100.36)
        assert row["long_term"]["signal"] == "BUY"
        assert (row["pe"], row["pb"], row["roe"]) == (8.0, 0.9, 0.25)

    def test_ranked_by_long_term_score(self, mocked_market) -> None:
        """Test the stronger fundamental case ranks first regardless of input order."""
        response = asyncio.run(screen(["DDD", "AAA"]))

        assert [p["symbol"] for p in response["passed"]] == ["AAA", "DDD"]
        assert response["passed"][1]["pb"] is None

    def test_failures_isolated(self, mocked_market) -> None:
        """Unknown and malformed symbols are reported without aborting the batch."""
        response = asyncio.run(screen(["AAA", "XYZ", "BAD.SYM"]))

        assert [p["symbol"] for p in response["passed"]] == ["AAA"]
        assert [(e["symbol"], e["error_type"]) for e in response["errors"]] == [
            ("XYZ", "invalid_symbol"),
            ("BAD.SYM", "invalid_parameters"),
        ]

    def test_unexpected_exception_reported(self, mocked_market) -> None:
        """An exception escaping evaluate becomes a data_unavailable entry."""
        with patch.object(screen_module, "evaluate", AsyncMock(side_effect=RuntimeError("boom"))):
            response = asyncio.run(screen(["AAA"]))

        assert response["passed"] == []
        assert response["errors"] == [{"symbol": "AAA", "error_type": "data_unavailable", "message": "boom"}]

    def test_duplicates_collapsed(self, mocked_market) -> None:
        """Test symbols are normalized and evaluated once."""
        response = asyncio.run(screen(["AAA", " aaa ", "AAA"]))

        assert response["symbol_count"] == 1
        assert evaluate_module.fetch_stock_prices_with_provenance.await_count == 1

    @pytest.mark.parametrize("symbols", [[], [f"S{i:02d}" for i in range(31)]])
    def test_invalid_symbol_list(self, mocked_market, symbols: list[str]) -> None:
        """Test empty or oversized lists are rejected before fetching."""
        response = asyncio.run(screen(symbols))

        assert response["error_type"] == "invalid_parameters"
        evaluate_module.fetch_stock_prices_with_provenance.assert_not_awaited()
