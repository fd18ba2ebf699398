"""
Value at Risk (VaR) Backtester.

Historical VaR and violation analysis:
- Historical VaR: linear-interpolated empirical quantile of returns
- Violation record: days on which the return fell below -VaR
- Kupiec proportion-of-failures test on the violation count
- Expected Shortfall (CVaR): average loss beyond the VaR threshold
"""

from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np
import pandas as pd
from scipy import stats

from equity_risk.exceptions import EmptySeriesError

# Quantile rule used everywhere: linear interpolation between order statistics
QUANTILE_METHOD = "linear"


@dataclass(frozen=True)
class VaRBacktestResult:
    """
    Result of a VaR backtest.

    Attributes:
        alpha: Tail probability (e.g., 0.05 for 95% VaR)
        var: Value at Risk (positive number representing loss)
        violations: Boolean series, True where return < -var
        violation_count: Number of violations
        violation_rate: violation_count / n_observations
        expected_rate: Violation rate implied by alpha
        n_observations: Number of returns tested
        expected_shortfall: Average loss on violation days (None if none)
        kupiec_statistic: Kupiec likelihood-ratio statistic
        kupiec_p_value: p-value of the Kupiec test (chi-squared, 1 dof)
    """
    alpha: float
    var: float
    violations: pd.Series = field(repr=False)
    violation_count: int
    violation_rate: float
    expected_rate: float
    n_observations: int
    expected_shortfall: Optional[float]
    kupiec_statistic: float
    kupiec_p_value: float

    @property
    def expected_violations(self) -> float:
        return self.n_observations * self.expected_rate

    @property
    def coverage_ok(self) -> bool:
        """Whether the Kupiec test fails to reject correct coverage at 5%."""
        return self.kupiec_p_value > 0.05


def kupiec_test(violation_count: int, n_observations: int, alpha: float) -> tuple:
    """
    Kupiec proportion-of-failures likelihood-ratio test.

    Returns:
        (LR statistic, p-value) under a chi-squared distribution with 1 dof.
    """
    n = n_observations
    x = violation_count
    p = x / n if n > 0 else 0.0

    # Log-likelihood under H0 (rate alpha) and under the observed rate;
    # the observed-rate term is 0 when x is 0 or n
    ll_null = (n - x) * np.log(1 - alpha) + x * np.log(alpha)
    ll_alt = 0.0
    if 0 < x < n:
        ll_alt = (n - x) * np.log(1 - p) + x * np.log(p)

    lr_stat = max(-2.0 * (ll_null - ll_alt), 0.0)
    p_value = float(1 - stats.chi2.cdf(lr_stat, 1))

    return float(lr_stat), p_value


class VaRBacktester:
    """
    Historical VaR estimation and violation backtesting.

    Example:
        >>> backtester = VaRBacktester()
        >>> result = backtester.backtest(returns, alpha=0.05)
        >>> print(f"{result.violation_count} violations "
        ...       f"({result.violation_rate:.2%} vs {result.expected_rate:.2%} expected)")
    """

    def _validate_returns(
        self,
        returns: Union[pd.Series, np.ndarray]
    ) -> pd.Series:
        """Validate and convert returns to pandas Series."""
        if isinstance(returns, np.ndarray):
            returns = pd.Series(returns)

        returns = returns.dropna().astype(float)

        if len(returns) == 0:
            raise EmptySeriesError("Cannot compute VaR on an empty return series")

        return returns

    @staticmethod
    def _validate_alpha(alpha: float) -> None:
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    def historical_var(
        self,
        returns: Union[pd.Series, np.ndarray],
        alpha: float = 0.05
    ) -> float:
        """
        Calculate Historical VaR as the negated alpha-quantile of returns.

        Args:
            returns: Series or array of returns.
            alpha: Tail probability (0.05 gives 95% VaR).

        Returns:
            VaR; positive when the alpha-quantile is a loss.

        Example:
            >>> var = backtester.historical_var(returns, 0.05)
            >>> print(f"95% chance daily loss won't exceed {var:.2%}")
        """
        self._validate_alpha(alpha)
        returns = self._validate_returns(returns)

        return float(-np.quantile(returns.to_numpy(), alpha, method=QUANTILE_METHOD))

    def violations(
        self,
        returns: Union[pd.Series, np.ndarray],
        var: float
    ) -> pd.Series:
        """Flag each return that falls below -var."""
        returns = self._validate_returns(returns)
        return (returns < -var).rename("violation")

    def expected_shortfall(
        self,
        returns: Union[pd.Series, np.ndarray],
        alpha: float = 0.05
    ) -> float:
        """
        Calculate Expected Shortfall (Conditional VaR).

        Average loss over returns at or below the alpha-quantile.
        """
        self._validate_alpha(alpha)
        returns = self._validate_returns(returns).to_numpy()

        threshold = np.quantile(returns, alpha, method=QUANTILE_METHOD)
        tail = returns[returns <= threshold]

        return float(-np.mean(tail))

    def backtest(
        self,
        returns: Union[pd.Series, np.ndarray],
        alpha: float = 0.05,
        var: Optional[float] = None
    ) -> VaRBacktestResult:
        """
        Count VaR violations over a return series.

        Args:
            returns: Series or array of returns.
            alpha: Tail probability.
            var: Threshold to test; defaults to the historical VaR of `returns`.

        Returns:
            VaRBacktestResult with counts, rates and the Kupiec test.

        Raises:
            EmptySeriesError: No observations after dropping missing values.
        """
        self._validate_alpha(alpha)
        returns = self._validate_returns(returns)

        if var is None:
            var = self.historical_var(returns, alpha)

        flags = self.violations(returns, var)
        n = len(flags)
        count = int(flags.sum())
        lr_stat, p_value = kupiec_test(count, n, alpha)

        shortfall = float(-returns[flags].mean()) if count else None

        return VaRBacktestResult(
            alpha=alpha,
            var=float(var),
            violations=flags,
            violation_count=count,
            violation_rate=count / n,
            expected_rate=alpha,
            n_observations=n,
            expected_shortfall=shortfall,
            kupiec_statistic=lr_stat,
            kupiec_p_value=p_value,
        )

    def rolling_var(
        self,
        returns: Union[pd.Series, np.ndarray],
        alpha: float = 0.05,
        window: int = 250
    ) -> pd.Series:
        """
        Out-of-sample historical VaR.

        The value on each date uses only the `window` returns before it,
        so the first `window` positions are NaN.
        """
        self._validate_alpha(alpha)
        returns = self._validate_returns(returns)

        if window < 2:
            raise ValueError(f"Rolling window must be at least 2, got {window}")

        quantiles = returns.rolling(window=window).quantile(alpha, interpolation=QUANTILE_METHOD)
        return (-quantiles.shift(1)).rename(f"rolling_var_{window}")

    def rolling_backtest(
        self,
        returns: Union[pd.Series, np.ndarray],
        alpha: float = 0.05,
        window: int = 250
    ) -> VaRBacktestResult:
        """
        Backtest the out-of-sample rolling VaR.

        Only dates with a defined VaR are scored; the reported `var` is the
        latest rolling estimate.
        """
        returns = self._validate_returns(returns)
        var_series = self.rolling_var(returns, alpha, window)

        mask = var_series.notna()
        scored = returns[mask]
        if len(scored) == 0:
            raise EmptySeriesError(
                f"No out-of-sample observations: {len(returns)} returns with window {window}"
            )

        flags = (scored < -var_series[mask]).rename("violation")
        n = len(flags)
        count = int(flags.sum())
        lr_stat, p_value = kupiec_test(count, n, alpha)

        return VaRBacktestResult(
            alpha=alpha,
            var=float(var_series[mask].iloc[-1]),
            violations=flags,
            violation_count=count,
            violation_rate=count / n,
            expected_rate=alpha,
            n_observations=n,
            expected_shortfall=float(-scored[flags].mean()) if count else None,
            kupiec_statistic=lr_stat,
            kupiec_p_value=p_value,
        )
