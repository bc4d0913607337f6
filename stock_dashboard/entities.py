"""
Core entity classes (ADTs) for the dashboard.

These classes represent the price data flowing from the stock API into the
statistics engine and out to the presentation layer.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union
import pandas as pd
import numpy as np


TimestampLike = Union[str, datetime, pd.Timestamp]


def to_utc_timestamp(value: TimestampLike) -> pd.Timestamp:
    """
    Normalize a timestamp to a timezone-aware UTC pd.Timestamp.

    Naive values are taken to be UTC already. Strings may carry any ISO 8601
    offset (including "Z") and up to nanosecond precision.

    Raises:
        ValueError: If the value cannot be parsed as a timestamp
    """
    ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"invalid timestamp: {value!r}")
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


@dataclass(frozen=True)
class PricePoint:
    """
    A single observed stock price.

    Attributes:
        price: Observed price
        timestamp: Instant the price was last updated (UTC)

    Representation Invariants:
        - timestamp is a timezone-aware UTC pd.Timestamp
    """
    price: float
    timestamp: pd.Timestamp

    def __post_init__(self):
        """Coerce price and timestamp into their canonical forms."""
        object.__setattr__(self, "price", float(self.price))
        object.__setattr__(self, "timestamp", to_utc_timestamp(self.timestamp))

    @classmethod
    def from_record(cls, record: dict) -> "PricePoint":
        """Build a PricePoint from an API record ({price, lastUpdatedAt})."""
        return cls(price=record["price"], timestamp=record["lastUpdatedAt"])

    def to_record(self) -> dict:
        """Serialize back to the API record shape."""
        return {
            "price": self.price,
            "lastUpdatedAt": self.timestamp.isoformat().replace("+00:00", "Z"),
        }


class PriceSeries:
    """
    A named sequence of price observations for one ticker.

    Points are kept in the order they were supplied; nothing is sorted or
    deduplicated on construction. Consumers that care about order (charts)
    use sorted_points().

    Attributes:
        ticker: Ticker symbol (e.g., "AAPL")
        name: Display name (defaults to the ticker)
        points: Tuple of PricePoint in input order
        source: "api" for upstream data, "mock" for fallback data

    Representation Invariants:
        - ticker is non-empty
        - source is one of: "api", "mock"
    """

    SOURCES = ("api", "mock")

    def __init__(
        self,
        ticker: str,
        points: Iterable[PricePoint],
        name: Optional[str] = None,
        source: str = "api"
    ):
        if not ticker:
            raise ValueError("ticker cannot be empty")
        if source not in self.SOURCES:
            raise ValueError(f"invalid source: {source}")

        self._ticker = ticker
        self._name = name or ticker
        self._points = tuple(points)
        self._source = source

    @property
    def ticker(self) -> str:
        return self._ticker

    @property
    def name(self) -> str:
        return self._name

    @property
    def points(self) -> Tuple[PricePoint, ...]:
        return self._points

    @property
    def source(self) -> str:
        return self._source

    @property
    def prices(self) -> np.ndarray:
        """Prices as a float array, in input order."""
        return np.array([p.price for p in self._points], dtype=float)

    def sorted_points(self) -> List[PricePoint]:
        """Return the points ordered by timestamp (ascending)."""
        return sorted(self._points, key=lambda p: p.timestamp)

    def to_series(self) -> pd.Series:
        """Return prices as a pd.Series indexed by timestamp, sorted."""
        points = self.sorted_points()
        index = pd.DatetimeIndex([p.timestamp for p in points], name="timestamp")
        return pd.Series([p.price for p in points], index=index, name=self._ticker, dtype=float)

    def to_records(self) -> List[dict]:
        """Serialize to a list of API records in input order."""
        return [p.to_record() for p in self._points]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __repr__(self) -> str:
        return f"PriceSeries({self._ticker}, {len(self)} points, source={self._source})"


@dataclass(frozen=True)
class SeriesStatistics:
    """
    Summary statistics for a PriceSeries.

    Attributes:
        average: Mean price
        std_dev: Sample standard deviation of price
        count: Number of data points the statistics were computed from
    """
    average: float
    std_dev: float
    count: int = 0

    @property
    def volatility(self) -> float:
        """Coefficient of variation in percent (0 when the average is 0)."""
        if self.average == 0:
            return 0.0
        return self.std_dev / self.average * 100


class CorrelationMatrix:
    """
    Square matrix of pairwise correlations labelled by ticker.

    Representation Invariants:
        - values is an n x n float array with n == len(tickers)
        - diagonal entries are exactly 1
    """

    def __init__(self, tickers: List[str], values: np.ndarray):
        values = np.asarray(values, dtype=float)
        n = len(tickers)
        if values.shape != (n, n):
            raise ValueError(f"values must be {n}x{n}, got {values.shape}")
        if n and not (np.diag(values) == 1.0).all():
            raise ValueError("diagonal entries must be 1")

        self._tickers = list(tickers)
        self._values = values

    @property
    def tickers(self) -> List[str]:
        return list(self._tickers)

    @property
    def values(self) -> np.ndarray:
        return self._values.copy()

    def __getitem__(self, key: Tuple[int, int]) -> float:
        i, j = key
        return float(self._values[i, j])

    def __len__(self) -> int:
        return len(self._tickers)

    def to_frame(self) -> pd.DataFrame:
        """Return the matrix as a DataFrame with tickers on both axes."""
        return pd.DataFrame(self._values, index=self._tickers, columns=self._tickers)

    def to_list(self) -> List[List[float]]:
        """Return the matrix as nested lists of floats."""
        return self._values.tolist()

    def __repr__(self) -> str:
        return f"CorrelationMatrix({len(self)}x{len(self)}: {', '.join(self._tickers)})"
