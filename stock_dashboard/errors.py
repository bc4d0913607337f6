"""Custom exceptions for the dashboard."""


class DashboardError(Exception):
    """Base exception for dashboard errors."""
    pass


class DataError(DashboardError):
    """Raised when upstream price data is missing, invalid, or unparseable."""
    pass


class ConfigError(DashboardError):
    """Raised when a configuration value cannot be interpreted."""
    pass
