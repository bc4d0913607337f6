"""
Price statistics and pairwise correlation.

Pure functions over PriceSeries: mean, sample standard deviation and
Pearson correlation on timestamp-aligned prices. None of these raise for
numeric reasons; undefined results are reported as 0.
"""

from typing import Dict, List, Sequence, Tuple
import numpy as np
import pandas as pd
from stock_dashboard.entities import CorrelationMatrix, PriceSeries, SeriesStatistics


def _bessel_denominator(n: int) -> int:
    """n - 1 for n > 1, else 1 so a single observation has zero spread."""
    return n - 1 if n > 1 else 1


def _std(values: np.ndarray) -> float:
    """Sample standard deviation of a float array (0 for constant input)."""
    if len(values) == 0:
        return float("nan")
    # Identical values must give exactly 0, not floating-point residue
    if np.ptp(values) == 0:
        return 0.0
    deviations = values - values.mean()
    return float(np.sqrt((deviations ** 2).sum() / _bessel_denominator(len(values))))


def mean(series: PriceSeries) -> float:
    """
    Average price of a series.

    Preconditions:
        - series is non-empty (an empty series yields NaN)

    Args:
        series: Price series

    Returns:
        Mean of the price fields
    """
    prices = series.prices
    if len(prices) == 0:
        return float("nan")
    return float(prices.mean())


def sample_std_dev(series: PriceSeries) -> float:
    """
    Sample standard deviation of price, with Bessel's correction.

    A single-point series divides by 1 and so returns 0.

    Preconditions:
        - series is non-empty (an empty series yields NaN)
    """
    return _std(series.prices)


def _paired_prices(series_a: PriceSeries, series_b: PriceSeries) -> Tuple[np.ndarray, np.ndarray]:
    """Prices of both series at their common timestamps."""
    # Later duplicates overwrite earlier ones
    map_a: Dict[pd.Timestamp, float] = {p.timestamp: p.price for p in series_a}
    map_b: Dict[pd.Timestamp, float] = {p.timestamp: p.price for p in series_b}

    # Chronological pairing keeps the sums identical for (a, b) and (b, a)
    common = sorted(map_a.keys() & map_b.keys())
    paired_a = np.array([map_a[ts] for ts in common], dtype=float)
    paired_b = np.array([map_b[ts] for ts in common], dtype=float)
    return paired_a, paired_b


def pearson_correlation(series_a: PriceSeries, series_b: PriceSeries) -> float:
    """
    Pearson correlation of two series over their common timestamps.

    Only observations whose timestamps appear in both series take part;
    means, covariance and variances are all computed on that paired subset.

    Postconditions:
        - Returns 0 if fewer than 2 timestamps overlap
        - Returns 0 if either paired subset has zero standard deviation
        - Otherwise returns a value in [-1, 1]

    Args:
        series_a: First price series
        series_b: Second price series

    Returns:
        Correlation coefficient
    """
    paired_a, paired_b = _paired_prices(series_a, series_b)
    n = len(paired_a)
    if n < 2:
        return 0.0

    std_a = _std(paired_a)
    std_b = _std(paired_b)
    if std_a == 0 or std_b == 0:
        return 0.0

    denominator = _bessel_denominator(n)
    diff_a = paired_a - paired_a.mean()
    diff_b = paired_b - paired_b.mean()
    covariance = (diff_a * diff_b).sum() / denominator
    var_a = (diff_a ** 2).sum() / denominator
    var_b = (diff_b ** 2).sum() / denominator

    correlation = covariance / np.sqrt(var_a * var_b)
    return float(np.clip(correlation, -1.0, 1.0))


def correlation_matrix(series_list: Sequence[PriceSeries]) -> np.ndarray:
    """
    Pairwise correlation matrix for a list of series.

    Every off-diagonal cell is computed on its own; the diagonal is 1.

    Args:
        series_list: Price series, one row/column each

    Returns:
        n x n float array
    """
    n = len(series_list)
    matrix = np.zeros((n, n), dtype=float)

    for i in range(n):
        for j in range(n):
            if i == j:
                matrix[i, j] = 1.0
            else:
                matrix[i, j] = pearson_correlation(series_list[i], series_list[j])

    return matrix


def compute_statistics(series: PriceSeries) -> SeriesStatistics:
    """
    Summary statistics for one series.

    Preconditions:
        - series is non-empty

    Returns:
        SeriesStatistics with average, std_dev and count
    """
    return SeriesStatistics(
        average=mean(series),
        std_dev=sample_std_dev(series),
        count=len(series)
    )


def compute_correlation_matrix(series_list: List[PriceSeries]) -> CorrelationMatrix:
    """Correlation matrix labelled with the tickers of series_list."""
    return CorrelationMatrix(
        tickers=[s.ticker for s in series_list],
        values=correlation_matrix(series_list)
    )
