"""
Command-line interface for the stock dashboard.

This module provides CLI commands for listing stocks, printing price
statistics and correlations, and serving the web dashboard.
"""

import argparse
import sys
import pandas as pd
from stock_dashboard.analytics.statistics import compute_correlation_matrix, compute_statistics
from stock_dashboard.config import load_settings
from stock_dashboard.data_sources.stocks import StockApiClient
from stock_dashboard.errors import DashboardError
from stock_dashboard.logging_utils import setup_logger
from stock_dashboard.reporting.charts import plot_correlation_heatmap


def _client(settings) -> StockApiClient:
    return StockApiClient(base_url=settings.api_base_url, timeout=settings.api_timeout)


def stocks_command(args, settings):
    """List available stocks."""
    stocks = _client(settings).list_stocks()
    print(f"{len(stocks)} stocks available:")
    for name, ticker in stocks.items():
        print(f"  {ticker:<8} {name}")


def stats_command(args, settings):
    """Print statistics for a ticker."""
    ticker = args.ticker.upper()
    minutes = args.minutes or settings.default_minutes

    print(f"Fetching {ticker} prices for the last {minutes} minutes...")
    series = _client(settings).get_price_history(ticker, minutes)
    if len(series) == 0:
        raise DashboardError(f"No price data for {ticker} in the last {minutes} minutes")
    if series.source == "mock":
        print("  Warning: upstream API unavailable, using sample data")

    stats = compute_statistics(series)
    print(f"  Average price:      ${stats.average:.2f}")
    print(f"  Standard deviation: ${stats.std_dev:.2f}")
    print(f"  Data points:        {stats.count}")
    print(f"  Volatility:         {stats.volatility:.2f}%")


def correlate_command(args, settings):
    """Print the correlation matrix, optionally saving a heatmap."""
    client = _client(settings)
    minutes = args.minutes or settings.default_minutes

    if args.tickers:
        tickers = [t.strip().upper() for t in args.tickers.split(",") if t.strip()]
        stocks = {t: t for t in tickers}
    else:
        stocks = client.list_stocks()

    print(f"Fetching prices for the last {minutes} minutes...")
    series_list = client.fetch_series(stocks, minutes, limit=settings.max_stocks)
    if not series_list:
        raise DashboardError("No price data available for correlation analysis")

    mocked = [s.ticker for s in series_list if s.source == "mock"]
    if mocked:
        print(f"  Warning: using sample data for {', '.join(mocked)}")

    matrix = compute_correlation_matrix(series_list)
    with pd.option_context("display.float_format", "{:.2f}".format):
        print("\n" + matrix.to_frame().to_string())

    if args.plot:
        plot_correlation_heatmap(matrix, save_path=args.plot)
        print(f"\n✓ Heatmap saved to: {args.plot}")


def serve_command(args, settings):
    """Run the web dashboard."""
    import uvicorn
    uvicorn.run("stock_dashboard.web:app", host=args.host, port=args.port)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stock Price Dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("stocks", help="List available stocks")

    stats_parser = subparsers.add_parser("stats", help="Show price statistics for a ticker")
    stats_parser.add_argument("ticker", help="Ticker symbol")
    stats_parser.add_argument("--minutes", type=int, help="Time window in minutes")

    corr_parser = subparsers.add_parser("correlate", help="Show pairwise price correlations")
    corr_parser.add_argument("--tickers", help="Comma-separated ticker list (default: listed stocks)")
    corr_parser.add_argument("--minutes", type=int, help="Time window in minutes")
    corr_parser.add_argument("--plot", help="Save heatmap PNG to this path")

    serve_parser = subparsers.add_parser("serve", help="Run the web dashboard")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args(argv)

    commands = {
        "stocks": stocks_command,
        "stats": stats_command,
        "correlate": correlate_command,
        "serve": serve_command,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)

    if getattr(args, "minutes", None) is not None and args.minutes <= 0:
        parser.error("--minutes must be positive")

    try:
        settings = load_settings()
        setup_logger("stock_dashboard", settings.log_level)
        commands[args.command](args, settings)
    except DashboardError as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
