"""
Comprehensive test suite for the risk metrics module.

Tests:
- RollingVolatilityEstimator
- VaRBacktester
- VolatilityModelFitter
"""

import dataclasses
from unittest.mock import patch, MagicMock

import numpy as np
import pandas as pd
import pytest
from arch.univariate import GeneralizedError, Normal, SkewStudent, StudentsT
from scipy import stats
from scipy.special import gamma as gamma_fn

from equity_risk.exceptions import (
    ConvergenceError,
    EmptySeriesError,
    InsufficientDataError,
    InvalidOrderError,
)
from equity_risk.risk import (
    RollingVolatilityEstimator,
    VaRBacktester,
    VaRBacktestResult,
    VolatilityFit,
    VolatilityModelFitter,
    VolatilityVariant,
    absolute_moments,
    kupiec_test,
)


# ============================================================================
# Fixtures
# ============================================================================

def simulate_garch(n, omega, alpha, beta, seed=42, burn=500):
    """Simulate GARCH(1,1) returns; parameters are in percent units."""
    rng = np.random.RandomState(seed)
    z = rng.standard_normal(n + burn)
    eps = np.zeros(n + burn)
    var = np.full(n + burn, omega / (1 - alpha - beta))
    for t in range(1, n + burn):
        var[t] = omega + alpha * eps[t - 1] ** 2 + beta * var[t - 1]
        eps[t] = np.sqrt(var[t]) * z[t]
    dates = pd.date_range(start="2005-01-03", periods=n, freq="B")
    return pd.Series(eps[burn:] / 100, index=dates)


@pytest.fixture
def sample_returns():
    """Generate sample return series for testing."""
    np.random.seed(42)
    returns = np.random.normal(0.0005, 0.02, 252)
    dates = pd.date_range(start='2024-01-01', periods=252, freq='B')
    return pd.Series(returns, index=dates)


@pytest.fixture(scope="module")
def garch_returns():
    """GARCH(1,1) sample with omega=0.1, alpha=0.1, beta=0.8 (percent units)."""
    return simulate_garch(8000, omega=0.1, alpha=0.1, beta=0.8)


@pytest.fixture
def backtester():
    return VaRBacktester()


@pytest.fixture
def fitter():
    return VolatilityModelFitter()


# ============================================================================
# RollingVolatilityEstimator Tests
# ============================================================================

class TestRollingVolatility:
    """Tests for RollingVolatilityEstimator."""

    def test_constant_series_is_zero(self):
        """Test that a constant series has zero volatility at every defined position."""
        returns = pd.Series([0.013] * 50)

        vol = RollingVolatilityEstimator(returns, window=30).to_series()

        assert vol.iloc[:29].isna().all()
        assert (vol.iloc[29:] == 0.0).all()

    def test_matches_pandas_rolling_std(self, sample_returns):
        vol = RollingVolatilityEstimator(sample_returns, window=21).to_series()
        expected = sample_returns.rolling(window=21).std()

        assert vol.index.equals(sample_returns.index)
        assert vol.iloc[:20].isna().all()
        assert np.allclose(vol.iloc[20:], expected.iloc[20:], atol=1e-10, rtol=0)

    def test_lazy_and_restartable(self, sample_returns):
        """Test that each iteration starts a fresh pass."""
        estimator = RollingVolatilityEstimator(sample_returns, window=10)

        iterator = iter(estimator)
        head = [next(iterator) for _ in range(12)]
        first = list(estimator)
        second = list(estimator)

        assert len(first) == len(sample_returns)
        np.testing.assert_array_equal(first, second)
        np.testing.assert_array_equal(head, first[:12])

    def test_annualized(self, sample_returns):
        daily = RollingVolatilityEstimator(sample_returns, window=21).to_series()
        annual = RollingVolatilityEstimator(sample_returns, window=21, annualize=True).to_series()

        ratio = annual.dropna() / daily.dropna()
        assert np.allclose(ratio, np.sqrt(252))

    def test_missing_values_dropped(self, sample_returns):
        returns = sample_returns.copy()
        returns.iloc[3] = np.nan

        vol = RollingVolatilityEstimator(returns, window=5).to_series()

        assert len(vol) == len(sample_returns) - 1

    def test_window_too_small(self, sample_returns):
        with pytest.raises(ValueError, match="at least 2"):
            RollingVolatilityEstimator(sample_returns, window=1)


# ============================================================================
# VaRBacktester Tests
# ============================================================================

class TestVaRBacktester:
    """Tests for VaRBacktester class."""

    def test_historical_var_linear_interpolation(self, backtester):
        """Test the linear-interpolation quantile rule on known values."""
        returns = pd.Series(np.linspace(-0.05, 0.05, 101))

        var = backtester.historical_var(returns, alpha=0.05)

        assert abs(var - 0.045) < 1e-12

    def test_historical_var_interpolates_between_order_statistics(self, backtester):
        returns = np.array([-0.04, -0.02, 0.0, 0.02, 0.04])

        # position 0.1 * 4 = 0.4 between -0.04 and -0.02
        var = backtester.historical_var(returns, alpha=0.1)

        assert abs(var - 0.032) < 1e-12

    def test_violation_definition(self, backtester):
        """Test that only returns strictly below -VaR are violations."""
        returns = pd.Series([-0.03, -0.02, -0.01, 0.01])

        flags = backtester.violations(returns, var=0.02)

        assert flags.tolist() == [True, False, False, False]

    def test_violation_rate_with_true_quantile(self, backtester):
        """Test coverage against the true normal quantile."""
        np.random.seed(42)
        returns = pd.Series(np.random.normal(0, 0.02, 2000))
        true_var = -stats.norm.ppf(0.05, loc=0, scale=0.02)

        result = backtester.backtest(returns, alpha=0.05, var=true_var)

        assert abs(result.violation_rate - 0.05) <= 0.02
        assert result.n_observations == 2000
        assert result.violation_count == int(result.violations.sum())

    def test_backtest_historical(self, backtester, sample_returns):
        result = backtester.backtest(sample_returns, alpha=0.05)

        assert isinstance(result, VaRBacktestResult)
        assert result.var == backtester.historical_var(sample_returns, 0.05)
        assert result.violation_rate == result.violation_count / len(sample_returns)
        assert result.expected_rate == 0.05
        assert abs(result.violation_rate - 0.05) < 0.01
        assert result.expected_shortfall >= result.var
        assert result.violations.index.equals(sample_returns.index)

    def test_expected_shortfall(self, backtester, sample_returns):
        es = backtester.expected_shortfall(sample_returns, 0.05)
        var = backtester.historical_var(sample_returns, 0.05)

        assert es >= var

    def test_empty_series(self, backtester):
        with pytest.raises(EmptySeriesError):
            backtester.backtest(pd.Series([], dtype=float))

    def test_all_missing_is_empty(self, backtester):
        with pytest.raises(EmptySeriesError):
            backtester.historical_var(pd.Series([np.nan, np.nan]))

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 1.5])
    def test_invalid_alpha(self, backtester, sample_returns, alpha):
        with pytest.raises(ValueError, match="alpha"):
            backtester.backtest(sample_returns, alpha=alpha)

    def test_kupiec_exact_coverage(self):
        """Test that the expected count gives a zero statistic."""
        stat, p_value = kupiec_test(5, 100, 0.05)

        assert abs(stat) < 1e-10
        assert abs(p_value - 1.0) < 1e-10

    def test_kupiec_rejects_excess_violations(self):
        stat, p_value = kupiec_test(20, 100, 0.05)

        assert stat > 3.84
        assert p_value < 0.05

    def test_kupiec_zero_violations(self):
        stat, p_value = kupiec_test(0, 100, 0.05)

        assert np.isfinite(stat)
        assert 0 <= p_value <= 1

    def test_rolling_var_is_out_of_sample(self, backtester, sample_returns):
        rolling = backtester.rolling_var(sample_returns, alpha=0.05, window=63)

        assert rolling.iloc[:63].isna().all()
        assert rolling.iloc[63:].notna().all()
        expected = -np.quantile(sample_returns.iloc[:63], 0.05)
        assert abs(rolling.iloc[63] - expected) < 1e-12

    def test_rolling_backtest(self, backtester, sample_returns):
        result = backtester.rolling_backtest(sample_returns, alpha=0.05, window=63)

        assert result.n_observations == len(sample_returns) - 63
        assert 0 <= result.violation_rate <= 1

    def test_rolling_backtest_window_too_long(self, backtester, sample_returns):
        with pytest.raises(EmptySeriesError):
            backtester.rolling_backtest(sample_returns, window=len(sample_returns))


# ============================================================================
# VolatilityModelFitter Tests
# ============================================================================

class TestVolatilityModelFitter:
    """Tests for VolatilityModelFitter class."""

    def test_garch_parameter_recovery(self, fitter, garch_returns):
        """Test that GARCH(1,1) recovers its generating parameters."""
        fit = fitter.fit(garch_returns, VolatilityVariant.GARCH)
        spec = fit.spec

        assert abs(spec.alpha - 0.1) / 0.1 < 0.3
        assert abs(spec.beta - 0.8) / 0.8 < 0.1
        unconditional = spec.omega / (1 - spec.alpha - spec.beta)
        assert abs(unconditional - 1.0) < 0.25

    def test_garch_constraints(self, fitter, garch_returns):
        spec = fitter.fit(garch_returns).spec

        assert spec.omega > 0
        assert spec.persistence < 1
        assert spec.gamma is None
        assert spec.label == "GARCH(1,1)"

    def test_conditional_volatility_aligned(self, fitter, garch_returns):
        fit = fitter.fit(garch_returns, VolatilityVariant.EGARCH)

        vol = fit.conditional_volatility
        assert vol.index.equals(garch_returns.index)
        assert (vol > 0).all()
        # Back in return units, close to the sample scale
        assert 0.2 < vol.mean() / garch_returns.std() < 5

    def test_asymmetric_variants_have_gamma(self, fitter, garch_returns):
        for variant in (VolatilityVariant.EGARCH, VolatilityVariant.TGARCH):
            spec = fitter.fit(garch_returns, variant).spec
            assert spec.gamma is not None
            assert "gamma[1]" in spec.params

    def test_three_distinct_aic_scores(self, fitter, garch_returns):
        fits = fitter.fit_variants(garch_returns)

        assert [f.spec.variant for f in fits] == list(VolatilityModelFitter.DEFAULT_VARIANTS)
        aics = [f.spec.aic for f in fits]
        assert len(set(aics)) == 3
        assert len({f.spec.n_observations for f in fits}) == 1

    def test_ranking_is_stable(self, fitter, garch_returns):
        first = [f.spec.label for f in fitter.rank_by_aic(fitter.fit_variants(garch_returns))]
        second = [f.spec.label for f in fitter.rank_by_aic(fitter.fit_variants(garch_returns))]

        assert first == second

    def test_ranking_ties_prefer_declared_order(self, fitter, garch_returns):
        garch = fitter.fit(garch_returns, VolatilityVariant.GARCH)
        tgarch = fitter.fit(garch_returns, VolatilityVariant.TGARCH)
        tied = VolatilityFit(
            spec=dataclasses.replace(tgarch.spec, aic=garch.spec.aic),
            conditional_volatility=tgarch.conditional_volatility
        )

        # Passed in reverse declaration order
        ranked = fitter.rank_by_aic([tied, garch])

        assert ranked[0].spec.variant is VolatilityVariant.GARCH
        assert ranked[1].spec.variant is VolatilityVariant.TGARCH

    def test_ranking_ignores_requested_variant_order(self, fitter, garch_returns):
        forward = fitter.rank_by_aic(fitter.fit_variants(garch_returns))
        backward = fitter.rank_by_aic(
            fitter.fit_variants(garch_returns, list(reversed(VolatilityModelFitter.DEFAULT_VARIANTS)))
        )

        assert [f.spec.label for f in forward] == [f.spec.label for f in backward]

    def test_ranking_ties_prefer_smaller_order(self, fitter, garch_returns):
        small = fitter.fit(garch_returns, p=1, q=1)
        large = fitter.fit(garch_returns, p=2, q=1)
        tied = VolatilityFit(
            spec=dataclasses.replace(large.spec, aic=small.spec.aic),
            conditional_volatility=large.conditional_volatility
        )

        ranked = fitter.rank_by_aic([tied, small])

        assert ranked[0].spec.label == "GARCH(1,1)"

    def test_comparison_table(self, fitter, garch_returns):
        table = fitter.comparison_table(fitter.fit_variants(garch_returns))

        assert list(table["rank"]) == [1, 2, 3]
        assert table["aic"].is_monotonic_increasing

    @pytest.mark.parametrize("p,q", [(0, 1), (1, -1)])
    def test_invalid_order(self, fitter, garch_returns, p, q):
        with pytest.raises(InvalidOrderError):
            fitter.fit(garch_returns, p=p, q=q)

    def test_arch_only_order_allowed(self, fitter, garch_returns):
        spec = fitter.fit(garch_returns, p=1, q=0).spec

        assert spec.beta == 0.0

    def test_unsupported_distribution(self):
        with pytest.raises(InvalidOrderError):
            VolatilityModelFitter(distribution="cauchy")

    def test_insufficient_data(self, fitter):
        with pytest.raises(InsufficientDataError):
            fitter.fit(pd.Series(np.random.normal(0, 0.01, 50)))

    @patch("equity_risk.risk.garch.arch_model")
    def test_non_convergence_raises(self, mock_arch_model, fitter, garch_returns):
        result = MagicMock()
        result.convergence_flag = 9
        mock_arch_model.return_value.fit.return_value = result

        with pytest.raises(ConvergenceError, match="did not converge"):
            fitter.fit(garch_returns)

    @patch("equity_risk.risk.garch.arch_model")
    def test_optimizer_error_becomes_convergence_error(self, mock_arch_model, fitter, garch_returns):
        """Test that any optimizer exception surfaces as ConvergenceError."""
        mock_arch_model.return_value.fit.side_effect = RuntimeError("Hessian is singular")

        with pytest.raises(ConvergenceError, match="estimation failed"):
            fitter.fit(garch_returns)

    @patch("equity_risk.risk.garch.arch_model")
    def test_forecast_error_becomes_convergence_error(self, mock_arch_model, fitter, garch_returns):
        result = MagicMock()
        result.convergence_flag = 0
        result.forecast.side_effect = IndexError("horizon out of range")
        mock_arch_model.return_value.fit.return_value = result

        with pytest.raises(ConvergenceError, match="forecast failed"):
            fitter.forecast_volatility(garch_returns, horizon=5)

    def test_tgarch_persistence_uses_absolute_moments(self, fitter, garch_returns):
        """Test that TGARCH persistence weights shocks by E|z| under normal innovations."""
        spec = fitter.fit(garch_returns, VolatilityVariant.TGARCH).spec

        abs_mean = np.sqrt(2 / np.pi)
        expected = spec.alpha * abs_mean + spec.gamma * abs_mean / 2 + spec.beta
        assert spec.persistence == pytest.approx(expected, rel=1e-12)
        assert spec.persistence < 1

    @patch("equity_risk.risk.garch.arch_model")
    def test_non_stationary_solution_raises(self, mock_arch_model, fitter, garch_returns):
        result = MagicMock()
        result.convergence_flag = 0
        result.params = pd.Series({"mu": 0.0, "omega": 0.01, "alpha[1]": 0.2, "beta[1]": 0.8})
        mock_arch_model.return_value.fit.return_value = result

        with pytest.raises(ConvergenceError, match="stationary"):
            fitter.fit(garch_returns)

    def test_forecast_volatility(self, fitter, garch_returns):
        forecast = fitter.forecast_volatility(garch_returns, horizon=5)

        assert len(forecast) == 5
        assert (forecast > 0).all()
        assert list(forecast.index) == [1, 2, 3, 4, 5]

    def test_forecast_volatility_simulated_variant(self, fitter, garch_returns):
        forecast = fitter.forecast_volatility(
            garch_returns, VolatilityVariant.EGARCH, horizon=3, simulations=200
        )

        assert len(forecast) == 3
        assert (forecast > 0).all()


# ============================================================================
# Innovation Distribution Moments
# ============================================================================

class TestAbsoluteMoments:
    """Tests for absolute moments of standardized innovations."""

    def test_normal_closed_form(self):
        abs_mean, abs_mean_neg = absolute_moments(Normal())

        assert abs_mean == pytest.approx(np.sqrt(2 / np.pi))
        assert abs_mean_neg == pytest.approx(abs_mean / 2)

    def test_ged_shape_two_is_normal(self):
        abs_mean, abs_mean_neg = absolute_moments(GeneralizedError(), np.array([2.0]))

        assert abs_mean == pytest.approx(np.sqrt(2 / np.pi), rel=1e-6)
        assert abs_mean_neg == pytest.approx(abs_mean / 2, rel=1e-6)

    def test_students_t_heavy_tails(self):
        """Test that fat tails lower E|z| below the normal value."""
        heavy, _ = absolute_moments(StudentsT(), np.array([5.0]))
        light, _ = absolute_moments(StudentsT(), np.array([200.0]))

        # Closed form for the standardized t: 2 sqrt(nu - 2) G((nu+1)/2) / (sqrt(pi) (nu - 1) G(nu/2))
        nu = 5.0
        exact = 2 * np.sqrt(nu - 2) * gamma_fn((nu + 1) / 2) / (np.sqrt(np.pi) * (nu - 1) * gamma_fn(nu / 2))
        assert heavy == pytest.approx(exact, rel=1e-4)
        assert heavy < light
        assert light == pytest.approx(np.sqrt(2 / np.pi), rel=1e-2)

    def test_skewed_distribution_splits_unevenly(self):
        abs_mean, abs_mean_neg = absolute_moments(SkewStudent(), np.array([8.0, -0.3]))

        assert 0 < abs_mean_neg < abs_mean
        assert abs_mean_neg != pytest.approx(abs_mean / 2, rel=1e-3)
