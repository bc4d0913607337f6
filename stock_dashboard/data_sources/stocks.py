"""
Stock price API client with mock-data fallback.

This module proxies the upstream stock-price service. Every public method
degrades to synthetic data when the upstream call fails, so the dashboard
always has something to display.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional
from urllib.parse import quote
import numpy as np
import pandas as pd
import requests
from stock_dashboard.config import DEFAULT_API_BASE_URL
from stock_dashboard.entities import PricePoint, PriceSeries
from stock_dashboard.errors import DataError

logger = logging.getLogger(__name__)

MOCK_STOCKS = {
    "Apple Inc.": "AAPL",
    "Microsoft Corporation": "MSFT",
    "Amazon.com, Inc.": "AMZN",
    "Alphabet Inc. Class A": "GOOGL",
    "Meta Platforms, Inc.": "META",
    "Tesla, Inc.": "TSLA",
    "Nvidia Corporation": "NVDA",
    "Berkshire Hathaway Inc.": "BRKB",
    "JPMorgan Chase & Co.": "JPM",
    "Johnson & Johnson": "JNJ",
}

MOCK_POINTS = 10
MOCK_STEP = timedelta(minutes=5)
MOCK_PRICE_LOW = 100.0
MOCK_PRICE_SPAN = 50.0


def parse_price_history(data) -> List[PricePoint]:
    """
    Parse an upstream price response into PricePoints.

    The service answers a list of {price, lastUpdatedAt} records when a time
    window is requested, and a single {"stock": {...}} object otherwise.

    Args:
        data: Decoded JSON body

    Returns:
        List of PricePoint in response order

    Raises:
        DataError: If the body has neither shape or a record is malformed
    """
    if isinstance(data, list):
        records = data
    elif isinstance(data, dict) and isinstance(data.get("stock"), dict) and data["stock"].get("price"):
        records = [data["stock"]]
    else:
        raise DataError(f"Unexpected API response structure: {str(data)[:200]}")

    try:
        return [PricePoint.from_record(record) for record in records]
    except (KeyError, TypeError, ValueError) as e:
        raise DataError(f"Malformed price record: {e}") from e


def mock_price_history(
    ticker: str,
    count: int = MOCK_POINTS,
    now: Optional[pd.Timestamp] = None,
    rng: Optional[np.random.Generator] = None,
    name: Optional[str] = None
) -> PriceSeries:
    """
    Generate a synthetic price series.

    Points run backwards from now, one every five minutes, with prices drawn
    uniformly from [100, 150).

    Args:
        ticker: Ticker to label the series with
        count: Number of points
        now: Timestamp of the most recent point (defaults to current UTC time)
        rng: Random generator (defaults to a fresh unseeded one)
        name: Display name for the series

    Returns:
        PriceSeries with source="mock"
    """
    if rng is None:
        rng = np.random.default_rng()
    if now is None:
        now = pd.Timestamp.now(tz="UTC")

    prices = MOCK_PRICE_LOW + rng.random(count) * MOCK_PRICE_SPAN
    points = [
        PricePoint(price=price, timestamp=now - i * MOCK_STEP)
        for i, price in enumerate(prices)
    ]
    return PriceSeries(ticker, points, name=name, source="mock")


class StockApiClient:
    """
    Client for the upstream stock-price service.

    Representation Invariants:
        - base_url has no trailing slash
        - timeout > 0
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Service base URL
            timeout: Per-request timeout in seconds
            session: Optional requests.Session to reuse connections
            rng: Random generator used for mock fallbacks
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rng = rng or np.random.default_rng()

    def _get_json(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DataError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise DataError(f"API responded with status: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise DataError(f"Invalid JSON from {url}: {e}") from e

    def list_stocks(self) -> Dict[str, str]:
        """
        List available stocks.

        Returns:
            Mapping of company name to ticker. The built-in mock mapping is
            returned if the service is unavailable.
        """
        try:
            data = self._get_json("/stocks")
            stocks = data.get("stocks") if isinstance(data, dict) else None
            if not isinstance(stocks, dict):
                raise DataError(f"Unexpected API response structure: {str(data)[:200]}")
            return {str(name): str(ticker) for name, ticker in stocks.items()}
        except DataError as e:
            logger.error(f"Error fetching stocks: {e}")
            return dict(MOCK_STOCKS)

    def get_price_history(
        self,
        ticker: str,
        minutes: int,
        name: Optional[str] = None
    ) -> PriceSeries:
        """
        Get prices for the last `minutes` minutes.

        Falls back to a mock series if the service is unavailable or returns
        something unparseable.

        Args:
            ticker: Ticker symbol
            minutes: Length of the time window
            name: Display name for the series

        Returns:
            PriceSeries (source="mock" on fallback)
        """
        try:
            data = self._get_json(f"/stocks/{quote(ticker, safe='')}", params={"minutes": minutes})
            points = parse_price_history(data)
            return PriceSeries(ticker, points, name=name, source="api")
        except DataError as e:
            logger.error(f"Error fetching stock {ticker}: {e}")
            return mock_price_history(ticker, rng=self.rng, name=name)

    def get_latest_price(self, ticker: str) -> PricePoint:
        """
        Get the most recent price for a ticker.

        Falls back to a single mock price if the service is unavailable.
        """
        try:
            data = self._get_json(f"/stocks/{quote(ticker, safe='')}")
            points = parse_price_history(data)
            if not points:
                raise DataError(f"No price returned for {ticker}")
            return points[0]
        except DataError as e:
            logger.error(f"Error fetching stock {ticker}: {e}")
            return mock_price_history(ticker, count=1, rng=self.rng).points[0]

    def fetch_series(
        self,
        stocks: Dict[str, str],
        minutes: int,
        limit: int = 10
    ) -> List[PriceSeries]:
        """
        Fetch price histories for several stocks, one request at a time.

        Args:
            stocks: Mapping of company name to ticker (order is preserved)
            minutes: Length of the time window
            limit: Maximum number of stocks to fetch

        Returns:
            List of non-empty PriceSeries
        """
        series_list = []
        for name, ticker in list(stocks.items())[:limit]:
            series = self.get_price_history(ticker, minutes, name=name)
            if len(series) == 0:
                logger.warning(f"No prices for {ticker} in the last {minutes} minutes, skipping")
                continue
            series_list.append(series)
        return series_list
