"""
Stock Price Dashboard

A browser dashboard for stock prices and pairwise price correlations,
backed by a thin proxy to an external stock-price API.
"""

__version__ = "0.1.0"
