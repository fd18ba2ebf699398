"""
Return forecasting module.

Provides:
- ARIMA order selection (stationarity test + AICc grid search)
- h-step-ahead forecasts with confidence bands
"""

from .arima import ARIMAForecaster, ARIMASpec, ForecastResult

__all__ = ["ARIMAForecaster", "ARIMASpec", "ForecastResult"]
