"""
Rolling Volatility Estimator.

Trailing-window sample standard deviation of returns, computed lazily
with a running mean / sum-of-squares update so each step is O(1).
"""

from collections import deque
from typing import Iterator, Union

import numpy as np
import pandas as pd


class RollingVolatilityEstimator:
    """
    Right-aligned rolling standard deviation over a fixed window.

    The estimator is an iterable view over its input: every call to
    iter() starts a fresh pass, yielding NaN for the first window - 1
    positions and the sample standard deviation (ddof=1) afterwards.

    Example:
        >>> estimator = RollingVolatilityEstimator(returns, window=30)
        >>> vol = estimator.to_series()
        >>> print(f"Latest 30-day vol: {vol.iloc[-1]:.4f}")
    """

    TRADING_DAYS_PER_YEAR = 252

    def __init__(
        self,
        returns: Union[pd.Series, np.ndarray],
        window: int = 30,
        annualize: bool = False,
        annualization_factor: int = TRADING_DAYS_PER_YEAR
    ):
        """
        Initialize the estimator.

        Args:
            returns: Series or array of returns; missing values are dropped.
            window: Number of trailing observations per estimate (>= 2).
            annualize: Scale each estimate by sqrt(annualization_factor).
            annualization_factor: Periods per year.
        """
        if window < 2:
            raise ValueError(f"Rolling window must be at least 2, got {window}")

        if isinstance(returns, np.ndarray):
            returns = pd.Series(returns)

        self.returns = returns.dropna().astype(float)
        self.window = window
        self.scale = np.sqrt(annualization_factor) if annualize else 1.0

    def __len__(self) -> int:
        return len(self.returns)

    def __iter__(self) -> Iterator[float]:
        n = self.window
        buffer = deque()
        mean = 0.0
        m2 = 0.0

        for x in self.returns.to_numpy():
            if len(buffer) < n:
                # Welford accumulation over the first window
                buffer.append(x)
                delta = x - mean
                mean += delta / len(buffer)
                m2 += delta * (x - mean)
            else:
                old = buffer.popleft()
                buffer.append(x)
                new_mean = mean + (x - old) / n
                m2 += (x - old) * (x - new_mean + old - mean)
                mean = new_mean

            if len(buffer) < n:
                yield np.nan
            else:
                yield float(np.sqrt(max(m2, 0.0) / (n - 1)) * self.scale)

    def to_series(self) -> pd.Series:
        """Materialize the estimates as a Series aligned to the input index."""
        return pd.Series(
            list(self),
            index=self.returns.index,
            name=f"rolling_vol_{self.window}"
        )
