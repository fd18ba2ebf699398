"""
Equity Volatility & VaR Report - Source Package.

This package contains the core modules for:
- data: Price download, CSV export, log returns
- forecasting: ARIMA order selection and forecasts
- risk: GARCH-family volatility, rolling volatility, VaR backtesting
- report: Report assembly, tables and charts
"""

from equity_risk import exceptions, data, forecasting, risk, report

__all__ = ["exceptions", "data", "forecasting", "risk", "report"]
