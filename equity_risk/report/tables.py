"""
Summary tables for the volatility report.
"""

from typing import Dict, TYPE_CHECKING

import pandas as pd

from equity_risk.data.returns import returns_statistics
from equity_risk.risk import VolatilityModelFitter

if TYPE_CHECKING:
    from equity_risk.report.builder import SymbolAnalysis


def summary_statistics_table(analyses: Dict[str, "SymbolAnalysis"]) -> pd.DataFrame:
    """Return-distribution statistics, one row per symbol."""
    returns = pd.DataFrame({
        symbol: analysis.returns
        for symbol, analysis in analyses.items()
        if analysis.returns is not None
    })
    if returns.empty:
        return pd.DataFrame()
    table = returns_statistics(returns)
    table.index.name = "symbol"
    return table.reset_index()


def arima_table(analyses: Dict[str, "SymbolAnalysis"]) -> pd.DataFrame:
    """Selected ARIMA order and fit scores per symbol."""
    rows = []
    for symbol, analysis in analyses.items():
        if analysis.forecast is None:
            continue
        spec = analysis.forecast.spec
        frame = analysis.forecast.frame
        rows.append({
            "symbol": symbol,
            "model": spec.label,
            "aicc": spec.aicc,
            "log_likelihood": spec.log_likelihood,
            "sigma2": spec.sigma2,
            "horizon": analysis.forecast.horizon,
            "first_forecast": float(frame["forecast"].iloc[0]),
            "last_forecast": float(frame["forecast"].iloc[-1]),
        })
    return pd.DataFrame(rows)


def model_comparison_table(analyses: Dict[str, "SymbolAnalysis"]) -> pd.DataFrame:
    """GARCH-family comparison per symbol, ranked by AIC within each symbol."""
    frames = []
    for symbol, analysis in analyses.items():
        if not analysis.volatility_fits:
            continue
        table = VolatilityModelFitter.comparison_table(analysis.volatility_fits)
        table.insert(0, "symbol", symbol)
        frames.append(table)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def var_table(analyses: Dict[str, "SymbolAnalysis"]) -> pd.DataFrame:
    """VaR threshold and violation statistics per symbol."""
    rows = []
    for symbol, analysis in analyses.items():
        result = analysis.var_backtest
        if result is None:
            continue
        rows.append({
            "symbol": symbol,
            "alpha": result.alpha,
            "var": result.var,
            "violation_count": result.violation_count,
            "n_observations": result.n_observations,
            "violation_rate": result.violation_rate,
            "expected_rate": result.expected_rate,
            "expected_shortfall": result.expected_shortfall,
            "kupiec_statistic": result.kupiec_statistic,
            "kupiec_p_value": result.kupiec_p_value,
        })
    return pd.DataFrame(rows)
