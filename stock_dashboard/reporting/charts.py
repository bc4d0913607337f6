"""
Chart generation for the dashboard.

This module renders matplotlib images for a stock's price history and for
the pairwise correlation heatmap, and maps correlations to heatmap colours.
"""

import io
from typing import Optional
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from stock_dashboard.entities import CorrelationMatrix, PriceSeries
from stock_dashboard.analytics.statistics import mean


# (lower bound, bucket) pairs checked in order; first bound exceeded wins
CORRELATION_BUCKETS = [
    (0.8, "strong-positive"),
    (0.6, "positive-3"),
    (0.4, "positive-2"),
    (0.2, "positive-1"),
    (-0.2, "neutral"),
    (-0.4, "negative-1"),
    (-0.6, "negative-2"),
    (-0.8, "negative-3"),
]
STRONGEST_NEGATIVE = "strong-negative"

# Legend order, strong negative to strong positive
CORRELATION_LEGEND = [STRONGEST_NEGATIVE] + [bucket for _, bucket in reversed(CORRELATION_BUCKETS)]


def correlation_color(correlation: float) -> str:
    """
    Map a correlation to its heatmap colour bucket.

    Args:
        correlation: Value in [-1, 1]

    Returns:
        Bucket name, e.g. "strong-positive", "neutral", "negative-2"
    """
    for bound, bucket in CORRELATION_BUCKETS:
        if correlation > bound:
            return bucket
    return STRONGEST_NEGATIVE


def _finish(fig, save_path: Optional[str]) -> Optional[bytes]:
    """Save the figure to save_path, or return it as PNG bytes."""
    plt.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return None

    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=100, bbox_inches="tight")
    plt.close(fig)
    return buffer.getvalue()


def plot_price_history(
    series: PriceSeries,
    save_path: Optional[str] = None
) -> Optional[bytes]:
    """
    Plot prices over time with a reference line at the average.

    Args:
        series: Price series (plotted in timestamp order)
        save_path: Path to save chart; if None the PNG is returned as bytes

    Returns:
        PNG bytes when save_path is None, otherwise None
    """
    fig, ax = plt.subplots(figsize=(10, 5))

    prices = series.to_series()
    if len(prices) > 0:
        # Plot in UTC wall-clock time
        ax.plot(prices.index.tz_localize(None), prices.values, marker="o", linewidth=2, color="#8884d8", label="Price")
        average = mean(series)
        ax.axhline(average, color="red", linestyle="--", label=f"Avg: ${average:.2f}")
        ax.legend()
    else:
        ax.text(0.5, 0.5, "No price data", ha="center", va="center", transform=ax.transAxes)

    ax.set_xlabel("Time")
    ax.set_ylabel("Price ($)")
    ax.set_title(f"{series.name} ({series.ticker})")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()

    return _finish(fig, save_path)


def plot_correlation_heatmap(
    matrix: CorrelationMatrix,
    save_path: Optional[str] = None
) -> Optional[bytes]:
    """
    Plot an annotated correlation heatmap.

    Args:
        matrix: Correlation matrix
        save_path: Path to save chart; if None the PNG is returned as bytes

    Returns:
        PNG bytes when save_path is None, otherwise None
    """
    n = len(matrix)
    size = max(4, 0.8 * n + 2)
    fig, ax = plt.subplots(figsize=(size, size))

    if n == 0:
        ax.text(0.5, 0.5, "No stock data", ha="center", va="center", transform=ax.transAxes)
        ax.set_axis_off()
        return _finish(fig, save_path)

    values = matrix.values
    im = ax.imshow(values, cmap="RdYlGn", vmin=-1, vmax=1)
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04, label="Correlation")

    ax.set_xticks(np.arange(n))
    ax.set_yticks(np.arange(n))
    ax.set_xticklabels(matrix.tickers, rotation=45, ha="right")
    ax.set_yticklabels(matrix.tickers)

    for i in range(n):
        for j in range(n):
            ax.text(j, i, f"{values[i, j]:.2f}", ha="center", va="center", fontsize=8)

    ax.set_title("Stock Correlation Heatmap")

    return _finish(fig, save_path)
