"""
FastAPI web interface for the stock dashboard.

This module proxies the upstream stock API (with mock fallback), exposes the
statistics engine over JSON, and renders the HTML dashboard.
Input is validated before it reaches the upstream service.
"""

import base64
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel
from stock_dashboard.analytics.statistics import compute_correlation_matrix, compute_statistics
from stock_dashboard.config import TIME_INTERVALS, Settings, load_settings
from stock_dashboard.data_sources.stocks import StockApiClient
from stock_dashboard.entities import PriceSeries
from stock_dashboard.logging_utils import setup_logger
from stock_dashboard.reporting.charts import (
    CORRELATION_LEGEND, correlation_color, plot_correlation_heatmap, plot_price_history
)

TICKER_PATTERN = re.compile(r"^[A-Z0-9.\-]{1,10}$")
MAX_MINUTES = 24 * 60

app = FastAPI(title="Stock Price Dashboard")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

templates_dir = Path(__file__).resolve().parent.parent / "frontend" / "templates"
template_env = Environment(
    loader=FileSystemLoader(str(templates_dir)),
    autoescape=select_autoescape(["html"])
)
template_env.filters["correlation_color"] = correlation_color


# Response models
class StockStatistics(BaseModel):
    ticker: str
    name: str
    average: float
    stdDev: float
    dataPoints: int
    volatility: float
    source: str


class CorrelationResponse(BaseModel):
    tickers: List[str]
    matrix: List[List[float]]
    statistics: List[StockStatistics]


@lru_cache()
def get_settings() -> Settings:
    """Settings are loaded once per process."""
    settings = load_settings()
    setup_logger("stock_dashboard", settings.log_level)
    return settings


def get_client(settings: Settings = Depends(get_settings)) -> Iterator[StockApiClient]:
    """Provide the upstream API client for one request (overridable in tests)."""
    client = StockApiClient(base_url=settings.api_base_url, timeout=settings.api_timeout)
    try:
        yield client
    finally:
        client.session.close()


def validate_ticker(ticker: str) -> str:
    """Normalize a ticker and reject anything outside [A-Z0-9.-]{1,10}."""
    ticker = ticker.strip().upper()
    if not TICKER_PATTERN.match(ticker):
        raise HTTPException(status_code=400, detail=f"Invalid ticker format: {ticker[:20]}")
    return ticker


def parse_ticker_list(tickers: str) -> List[str]:
    """Parse a comma-separated ticker list, dropping blanks and duplicates."""
    parsed = [validate_ticker(t) for t in tickers.split(",") if t.strip()]
    return list(dict.fromkeys(parsed))


def statistics_payload(series: PriceSeries) -> dict:
    """Statistics for one series, rounded the way the dashboard shows them."""
    stats = compute_statistics(series)
    return {
        "ticker": series.ticker,
        "name": series.name,
        "average": round(stats.average, 2),
        "stdDev": round(stats.std_dev, 2),
        "dataPoints": stats.count,
        "volatility": round(stats.volatility, 2),
        "source": series.source,
    }


def _heatmap_series(
    client: StockApiClient,
    settings: Settings,
    minutes: int,
    tickers: Optional[str] = None
) -> List[PriceSeries]:
    """Fetch the series shown in the heatmap."""
    if tickers:
        stocks = {ticker: ticker for ticker in parse_ticker_list(tickers)}
    else:
        stocks = client.list_stocks()
    return client.fetch_series(stocks, minutes, limit=settings.max_stocks)


def _non_empty(series: PriceSeries) -> PriceSeries:
    if len(series) == 0:
        raise HTTPException(status_code=404, detail=f"No price data for {series.ticker}")
    return series


@app.get("/api/stocks")
def list_stocks(client: StockApiClient = Depends(get_client)):
    """List available stocks as {"stocks": {name: ticker}}."""
    return {"stocks": client.list_stocks()}


@app.get("/api/stocks/{ticker}")
def get_stock(
    ticker: str,
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    client: StockApiClient = Depends(get_client)
):
    """Price history for the last `minutes`, or the latest price if omitted."""
    ticker = validate_ticker(ticker)
    if minutes is None:
        return {"stock": client.get_latest_price(ticker).to_record()}
    return client.get_price_history(ticker, minutes).to_records()


@app.get("/api/stocks/{ticker}/statistics", response_model=StockStatistics)
def get_stock_statistics(
    ticker: str,
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    client: StockApiClient = Depends(get_client),
    settings: Settings = Depends(get_settings)
):
    """Average, standard deviation and volatility for one stock."""
    ticker = validate_ticker(ticker)
    series = _non_empty(client.get_price_history(ticker, minutes or settings.default_minutes))
    return statistics_payload(series)


@app.get("/api/correlation", response_model=CorrelationResponse)
def get_correlation(
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    tickers: Optional[str] = None,
    client: StockApiClient = Depends(get_client),
    settings: Settings = Depends(get_settings)
):
    """Pairwise correlation matrix plus per-stock statistics."""
    series_list = _heatmap_series(client, settings, minutes or settings.default_minutes, tickers)
    matrix = compute_correlation_matrix(series_list)
    return {
        "tickers": matrix.tickers,
        "matrix": matrix.to_list(),
        "statistics": [statistics_payload(s) for s in series_list],
    }


@app.get("/chart/{ticker}.png")
def price_chart(
    ticker: str,
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    client: StockApiClient = Depends(get_client),
    settings: Settings = Depends(get_settings)
):
    """Price chart image for one stock."""
    ticker = validate_ticker(ticker)
    series = client.get_price_history(ticker, minutes or settings.default_minutes)
    return Response(content=plot_price_history(series), media_type="image/png")


@app.get("/heatmap.png")
def heatmap_chart(
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    tickers: Optional[str] = None,
    client: StockApiClient = Depends(get_client),
    settings: Settings = Depends(get_settings)
):
    """Correlation heatmap image."""
    series_list = _heatmap_series(client, settings, minutes or settings.default_minutes, tickers)
    matrix = compute_correlation_matrix(series_list)
    return Response(content=plot_correlation_heatmap(matrix), media_type="image/png")


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    ticker: Optional[str] = None,
    minutes: Optional[int] = Query(None, gt=0, le=MAX_MINUTES),
    client: StockApiClient = Depends(get_client),
    settings: Settings = Depends(get_settings)
):
    """Dashboard page: stock selector, price chart and correlation heatmap."""
    minutes = minutes or settings.default_minutes
    stocks = client.list_stocks()

    if ticker:
        selected = validate_ticker(ticker)
    else:
        selected = next(iter(stocks.values()), None)

    series_list = client.fetch_series(stocks, minutes, limit=settings.max_stocks)
    matrix = compute_correlation_matrix(series_list)

    # Chart, table and stats card all come from this one series
    selected_series = None
    selected_stats = None
    chart_uri = None
    if selected is not None:
        fetched = {s.ticker: s for s in series_list}
        if selected in fetched:
            selected_series = fetched[selected]
        else:
            names = {t: n for n, t in stocks.items()}
            selected_series = client.get_price_history(selected, minutes, name=names.get(selected))
        if len(selected_series) > 0:
            selected_stats = statistics_payload(selected_series)
            png = plot_price_history(selected_series)
            chart_uri = "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    template = template_env.get_template("index.html")
    return HTMLResponse(template.render(
        stocks=stocks,
        selected=selected,
        minutes=minutes,
        intervals=TIME_INTERVALS,
        points=selected_series.sorted_points() if selected_series is not None else [],
        selected_stats=selected_stats,
        chart_uri=chart_uri,
        heatmap_tickers=matrix.tickers,
        heatmap=matrix.to_list(),
        heatmap_stats=[statistics_payload(s) for s in series_list],
        legend=CORRELATION_LEGEND,
        using_mock=any(s.source == "mock" for s in series_list),
    ))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
