"""
Data collection and processing module.

Handles:
- Adjusted close price fetching from yfinance
- Inclusive date-range filtering and CSV export
- Log return calculation and summary statistics
"""

from equity_risk.data.price_client import PriceClient, filter_date_range, export_csv, load_csv
from equity_risk.data.returns import log_returns, reconstruct_prices, returns_statistics

__all__ = [
    "PriceClient",
    "filter_date_range",
    "export_csv",
    "load_csv",
    "log_returns",
    "reconstruct_prices",
    "returns_statistics",
]
