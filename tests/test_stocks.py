"""
Tests for the stock API client.

Tests cover:
- Parsing both upstream response shapes
- Mocked HTTP calls (URLs, params, timeouts)
- Mock-data fallback on network errors, bad status and bad bodies
- Sequential multi-stock fetch
"""

import pytest
import numpy as np
import pandas as pd
import requests
from unittest.mock import Mock
from stock_dashboard.data_sources.stocks import (
    StockApiClient, MOCK_STOCKS, mock_price_history, parse_price_history
)
from stock_dashboard.errors import DataError


def make_response(body, status_code=200):
    """Build a fake requests.Response."""
    response = Mock()
    response.ok = 200 <= status_code < 400
    response.status_code = status_code
    response.json.return_value = body
    return response


def make_client(response=None, side_effect=None):
    """Build a client around a mocked session."""
    session = Mock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = response
    client = StockApiClient(
        base_url="http://stocks.test/api/",
        timeout=5,
        session=session,
        rng=np.random.default_rng(42)
    )
    return client, session


HISTORY = [
    {"price": 666.66595, "lastUpdatedAt": "2025-05-08T04:11:42.465706306Z"},
    {"price": 212.9439, "lastUpdatedAt": "2025-05-08T04:14:39.465201105Z"},
]


class TestParsePriceHistory:
    """Tests for parse_price_history."""

    def test_list_shape(self):
        """Test a list of price records."""
        points = parse_price_history(HISTORY)
        assert [p.price for p in points] == [666.66595, 212.9439]

    def test_single_stock_shape(self):
        """Test the {"stock": {...}} shape."""
        points = parse_price_history({"stock": HISTORY[0]})
        assert len(points) == 1
        assert points[0].price == 666.66595

    def test_empty_list(self):
        """Test that an empty window is valid."""
        assert parse_price_history([]) == []

    def test_unexpected_shape_raises(self):
        """Test that other bodies are rejected."""
        with pytest.raises(DataError, match="Unexpected API response structure"):
            parse_price_history({"prices": []})

    def test_malformed_record_raises(self):
        """Test that records without lastUpdatedAt are rejected."""
        with pytest.raises(DataError, match="Malformed price record"):
            parse_price_history([{"price": 1.0}])


class TestMockPriceHistory:
    """Tests for mock_price_history."""

    def test_shape(self):
        """Test ten points, five minutes apart, priced in [100, 150)."""
        now = pd.Timestamp("2024-01-01T12:00:00Z")
        series = mock_price_history("AAPL", now=now, rng=np.random.default_rng(0))

        assert len(series) == 10
        assert series.source == "mock"
        assert series.points[0].timestamp == now
        assert series.points[-1].timestamp == now - pd.Timedelta(minutes=45)
        assert all(100 <= p.price < 150 for p in series)

    def test_seeded_rng_is_reproducible(self):
        """Test that the same seed gives the same prices."""
        now = pd.Timestamp("2024-01-01T12:00:00Z")
        a = mock_price_history("AAPL", now=now, rng=np.random.default_rng(3))
        b = mock_price_history("AAPL", now=now, rng=np.random.default_rng(3))
        assert list(a.prices) == list(b.prices)


class TestListStocks:
    """Tests for StockApiClient.list_stocks."""

    def test_list_stocks(self):
        """Test proxying the stock list."""
        client, session = make_client(make_response({"stocks": {"Apple Inc.": "AAPL"}}))

        assert client.list_stocks() == {"Apple Inc.": "AAPL"}

        args, kwargs = session.get.call_args
        assert args[0] == "http://stocks.test/api/stocks"
        assert kwargs["timeout"] == 5
        assert kwargs["headers"] == {"Accept": "application/json"}

    def test_network_error_falls_back(self):
        """Test mock stock list on connection failure."""
        client, _ = make_client(side_effect=requests.ConnectionError("refused"))
        assert client.list_stocks() == MOCK_STOCKS

    def test_bad_status_falls_back(self):
        """Test mock stock list on HTTP 503."""
        client, _ = make_client(make_response({}, status_code=503))
        assert client.list_stocks() == MOCK_STOCKS

    def test_unexpected_body_falls_back(self, caplog):
        """Test mock stock list when the body has no stocks mapping."""
        client, _ = make_client(make_response(["AAPL"]))
        assert client.list_stocks() == MOCK_STOCKS
        assert "Error fetching stocks" in caplog.text

    def test_invalid_json_falls_back(self):
        """Test mock stock list when the body is not JSON."""
        response = make_response(None)
        response.json.side_effect = ValueError("no json")
        client, _ = make_client(response)
        assert client.list_stocks() == MOCK_STOCKS

    def test_fallback_is_a_copy(self):
        """Test that callers cannot mutate the built-in mock mapping."""
        client, _ = make_client(side_effect=requests.Timeout("slow"))
        client.list_stocks()["Fake Co."] = "FAKE"
        assert "Fake Co." not in MOCK_STOCKS


class TestGetPriceHistory:
    """Tests for StockApiClient.get_price_history."""

    def test_history(self):
        """Test fetching a time window."""
        client, session = make_client(make_response(HISTORY))

        series = client.get_price_history("AAPL", 30, name="Apple Inc.")

        assert series.ticker == "AAPL"
        assert series.name == "Apple Inc."
        assert series.source == "api"
        assert len(series) == 2
        args, kwargs = session.get.call_args
        assert args[0] == "http://stocks.test/api/stocks/AAPL"
        assert kwargs["params"] == {"minutes": 30}

    def test_ticker_is_quoted(self):
        """Test that the ticker cannot escape its path segment."""
        client, session = make_client(make_response(HISTORY))
        client.get_price_history("A/B", 30)
        assert session.get.call_args[0][0] == "http://stocks.test/api/stocks/A%2FB"

    def test_network_error_falls_back_to_mock(self):
        """Test mock series on connection failure."""
        client, _ = make_client(side_effect=requests.ConnectionError("refused"))

        series = client.get_price_history("AAPL", 30)

        assert series.source == "mock"
        assert series.ticker == "AAPL"
        assert len(series) == 10
        assert all(100 <= p.price < 150 for p in series)

    def test_unexpected_body_falls_back_to_mock(self):
        """Test mock series on an unparseable body."""
        client, _ = make_client(make_response({"error": "nope"}))
        assert client.get_price_history("AAPL", 30).source == "mock"


class TestGetLatestPrice:
    """Tests for StockApiClient.get_latest_price."""

    def test_latest_price(self):
        """Test fetching the current price without a window."""
        client, session = make_client(make_response({"stock": HISTORY[1]}))

        point = client.get_latest_price("NVDA")

        assert point.price == 212.9439
        args, kwargs = session.get.call_args
        assert args[0] == "http://stocks.test/api/stocks/NVDA"
        assert kwargs["params"] is None

    def test_failure_falls_back_to_mock(self):
        """Test a mock price on failure."""
        client, _ = make_client(make_response({}, status_code=500))
        point = client.get_latest_price("NVDA")
        assert 100 <= point.price < 150


class TestFetchSeries:
    """Tests for StockApiClient.fetch_series."""

    def test_fetch_preserves_order_and_limit(self):
        """Test that stocks are fetched in order up to the limit."""
        client, session = make_client(make_response(HISTORY))
        stocks = {"Apple": "AAPL", "Microsoft": "MSFT", "Amazon": "AMZN"}

        series_list = client.fetch_series(stocks, 15, limit=2)

        assert [s.ticker for s in series_list] == ["AAPL", "MSFT"]
        assert [s.name for s in series_list] == ["Apple", "Microsoft"]
        assert session.get.call_count == 2

    def test_empty_series_skipped(self):
        """Test that stocks with no prices in the window are skipped."""
        client, _ = make_client(make_response([]))
        assert client.fetch_series({"Apple": "AAPL"}, 15) == []

    def test_invalid_timeout_raises(self):
        """Test that the timeout must be positive."""
        with pytest.raises(ValueError, match="timeout must be positive"):
            StockApiClient(timeout=0)
