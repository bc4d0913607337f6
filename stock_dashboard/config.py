"""
Runtime configuration.

Settings are read from environment variables; a .env file in the working
directory is loaded first if present.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv
from stock_dashboard.errors import ConfigError


DEFAULT_API_BASE_URL = "http://20.244.56.144/evaluation-service"

# Choices offered by the dashboard's time-interval selector
TIME_INTERVALS = {
    15: "Last 15 minutes",
    30: "Last 30 minutes",
    60: "Last 1 hour",
    120: "Last 2 hours",
    240: "Last 4 hours",
}


@dataclass(frozen=True)
class Settings:
    """
    Dashboard settings.

    Attributes:
        api_base_url: Base URL of the upstream stock API (no trailing slash)
        api_timeout: Per-request timeout in seconds
        default_minutes: Time window used when none is requested
        max_stocks: Maximum number of stocks in the correlation heatmap
        log_level: Logging level name
    """
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = 10.0
    default_minutes: int = 30
    max_stocks: int = 10
    log_level: str = "INFO"


def _get_int_env(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        parsed = int(val)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {val!r}") from e
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _get_float_env(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        parsed = float(val)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {val!r}") from e
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def load_settings(dotenv: bool = True) -> Settings:
    """
    Build Settings from the environment.

    Args:
        dotenv: Whether to load a .env file before reading variables

    Returns:
        Settings instance

    Raises:
        ConfigError: If a numeric variable is malformed or not positive
    """
    if dotenv:
        load_dotenv()

    return Settings(
        api_base_url=os.getenv("STOCK_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        api_timeout=_get_float_env("STOCK_API_TIMEOUT", 10.0),
        default_minutes=_get_int_env("STOCK_DASHBOARD_DEFAULT_MINUTES", 30),
        max_stocks=_get_int_env("STOCK_DASHBOARD_MAX_STOCKS", 10),
        log_level=os.getenv("STOCK_DASHBOARD_LOG_LEVEL", "INFO").upper(),
    )
