"""
Return calculations on adjusted close prices.
"""

from typing import Union

import numpy as np
import pandas as pd
from scipy import stats

from equity_risk.exceptions import InsufficientDataError, InvalidPriceError

TRADING_DAYS_PER_YEAR = 252

PriceData = Union[pd.Series, pd.DataFrame]


def log_returns(prices: PriceData) -> PriceData:
    """
    Compute log returns ln(P_t / P_{t-1}).

    Missing prices are dropped first (per column for a DataFrame), so the
    result has one row fewer than the cleaned input and is indexed by the
    later date of each pair.

    Args:
        prices: Series or DataFrame of strictly positive prices.

    Returns:
        Log returns with the same type as the input.

    Raises:
        InsufficientDataError: Fewer than two prices.
        InvalidPriceError: A price is zero or negative.
    """
    if isinstance(prices, pd.DataFrame):
        return pd.DataFrame({column: log_returns(prices[column]) for column in prices.columns})

    clean = prices.dropna().astype(float)
    if len(clean) < 2:
        raise InsufficientDataError(
            f"Insufficient data: {len(clean)} prices. Need at least 2 for returns."
        )
    if (clean <= 0).any():
        raise InvalidPriceError(
            f"Prices must be strictly positive to compute log returns "
            f"({int((clean <= 0).sum())} non-positive values in {prices.name or 'series'})"
        )

    values = clean.to_numpy()
    returns = np.log(values[1:] / values[:-1])

    return pd.Series(returns, index=clean.index[1:], name=prices.name)


def reconstruct_prices(returns: pd.Series, initial_price: float) -> pd.Series:
    """
    Rebuild a price path from log returns.

    The first element is the initial price; each following element is
    initial_price * exp(cumulative log return). Without a prior date the
    initial price is indexed one business day before the first return.
    """
    if initial_price <= 0:
        raise ValueError("Initial price must be positive")

    path = initial_price * np.exp(np.cumsum(returns.to_numpy()))
    values = np.concatenate([[initial_price], path])

    if isinstance(returns.index, pd.DatetimeIndex) and len(returns) > 0:
        first = returns.index[0] - pd.offsets.BDay(1)
        index = pd.DatetimeIndex([first]).append(returns.index)
    else:
        index = pd.RangeIndex(len(values))

    return pd.Series(values, index=index, name=returns.name)


def returns_statistics(returns: PriceData) -> pd.DataFrame:
    """
    Compute per-symbol summary statistics of returns.

    Values are per-period except annualized_volatility, which scales the
    daily standard deviation by sqrt(252).
    """
    if isinstance(returns, pd.Series):
        returns = returns.to_frame(name=returns.name or "returns")

    columns = [
        "observations", "mean", "std", "skew", "kurtosis", "min", "max",
        "annualized_volatility", "jarque_bera", "jarque_bera_pvalue"
    ]

    rows = {}
    for symbol in returns.columns:
        series = returns[symbol].dropna()
        if len(series) < 3:
            continue
        jb = stats.jarque_bera(series.to_numpy())
        rows[symbol] = {
            "observations": int(len(series)),
            "mean": float(series.mean()),
            "std": float(series.std(ddof=1)),
            "skew": float(series.skew()),
            "kurtosis": float(series.kurtosis()),
            "min": float(series.min()),
            "max": float(series.max()),
            "annualized_volatility": float(series.std(ddof=1) * np.sqrt(TRADING_DAYS_PER_YEAR)),
            "jarque_bera": float(jb.statistic),
            "jarque_bera_pvalue": float(jb.pvalue),
        }

    return pd.DataFrame.from_dict(rows, orient="index", columns=columns)
