"""
GARCH-family Volatility Model Fitter.

Fits conditional variance models by maximum likelihood with the arch package:
- GARCH:  sigma2_t = omega + alpha * e2_{t-1} + beta * sigma2_{t-1}
- EGARCH: ln sigma2_t = omega + alpha * (|z_{t-1}| - E|z|) + gamma * z_{t-1} + beta * ln sigma2_{t-1}
- TGARCH: sigma_t = omega + alpha * |e_{t-1}| + gamma * |e_{t-1}| * 1[e_{t-1} < 0] + beta * sigma_{t-1}

TGARCH persistence is alpha * E|z| + gamma * E[|z| 1(z < 0)] + beta, the
coefficient of the E[sigma] recursion under the fitted innovation distribution.

Orders follow arch's convention: p is the shock (ARCH) lag and q the
variance (GARCH) lag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union, List, Dict, Sequence, Tuple
import logging
import warnings

import numpy as np
import pandas as pd
from arch import arch_model
from arch.univariate import Normal
from scipy import integrate

from equity_risk.exceptions import (
    ConvergenceError,
    InsufficientDataError,
    InvalidOrderError,
)

logger = logging.getLogger(__name__)


class VolatilityVariant(Enum):
    """Supported conditional variance models, in declaration (simplicity) order."""

    GARCH = "GARCH"
    EGARCH = "EGARCH"
    TGARCH = "TGARCH"

    @property
    def arch_options(self) -> Dict[str, object]:
        """Keyword arguments selecting this variant in arch_model."""
        if self is VolatilityVariant.GARCH:
            return {"vol": "GARCH", "o": 0, "power": 2.0}
        if self is VolatilityVariant.EGARCH:
            return {"vol": "EGARCH", "o": 1}
        return {"vol": "GARCH", "o": 1, "power": 1.0}

    @property
    def is_asymmetric(self) -> bool:
        return self is not VolatilityVariant.GARCH


@dataclass(frozen=True)
class VolatilityModelSpec:
    """
    Fitted parameters and scores of one conditional variance model.

    Parameters are estimated on returns multiplied by `scale` (percent
    returns by default), as is customary with arch.

    Attributes:
        variant: Model family
        p: Shock (ARCH) order
        q: Variance (GARCH) order
        distribution: Innovation distribution
        params: All fitted parameters keyed by arch name
        omega: Constant of the variance recursion
        alpha: Sum of shock coefficients
        beta: Sum of variance coefficients
        gamma: Sum of asymmetry coefficients (None for GARCH)
        persistence: Volatility persistence implied by the parameters
        log_likelihood: Maximized log-likelihood
        aic: Akaike Information Criterion (lower is better)
        bic: Bayesian Information Criterion
        n_observations: Sample size of the fit
        scale: Multiplier applied to returns before fitting
    """
    variant: VolatilityVariant
    p: int
    q: int
    distribution: str
    params: Dict[str, float]
    omega: float
    alpha: float
    beta: float
    gamma: Optional[float]
    persistence: float
    log_likelihood: float
    aic: float
    bic: float
    n_observations: int
    scale: float

    @property
    def label(self) -> str:
        return f"{self.variant.value}({self.p},{self.q})"


@dataclass(frozen=True)
class VolatilityFit:
    """
    A fitted model with its conditional volatility path.

    Attributes:
        spec: Fitted model specification
        conditional_volatility: Fitted conditional standard deviation in
            return units, aligned one-to-one with the fitting returns
    """
    spec: VolatilityModelSpec
    conditional_volatility: pd.Series = field(repr=False)


def _sum_params(params: pd.Series, prefix: str) -> float:
    return float(sum(v for k, v in params.items() if k.startswith(prefix + "[")))


def absolute_moments(distribution, parameters=None) -> Tuple[float, float]:
    """
    Absolute moments of a standardized arch innovation distribution.

    Args:
        distribution: arch distribution instance (Normal, StudentsT, ...).
        parameters: Its shape parameters, or None for the normal.

    Returns:
        (E|z|, E[|z| 1(z < 0)]). The normal uses the closed form sqrt(2/pi);
        other distributions integrate the absolute quantile function.
    """
    if isinstance(distribution, Normal):
        abs_mean = float(np.sqrt(2.0 / np.pi))
        return abs_mean, abs_mean / 2.0

    def quantile(u):
        return float(np.asarray(distribution.ppf(u, parameters)).ravel()[0])

    split = float(np.asarray(distribution.cdf(np.array([0.0]), parameters)).ravel()[0])
    negative, _ = integrate.quad(lambda u: -quantile(u), 0.0, split, limit=200)
    positive, _ = integrate.quad(quantile, split, 1.0, limit=200)
    return negative + positive, negative


class VolatilityModelFitter:
    """
    Fits and compares GARCH-family models on a return series.

    Example:
        >>> fitter = VolatilityModelFitter()
        >>> fits = fitter.fit_variants(returns)
        >>> best = fitter.rank_by_aic(fits)[0]
        >>> print(f"Best model: {best.spec.label}, AIC={best.spec.aic:.1f}")
    """

    DISTRIBUTIONS = ("normal", "t", "skewt", "ged")
    DEFAULT_VARIANTS = (
        VolatilityVariant.GARCH,
        VolatilityVariant.EGARCH,
        VolatilityVariant.TGARCH,
    )

    def __init__(
        self,
        distribution: str = "normal",
        max_iter: int = 1000,
        scale: float = 100.0,
        min_observations: int = 100
    ):
        """
        Initialize the fitter.

        Args:
            distribution: Innovation distribution ('normal', 't', 'skewt', 'ged').
            max_iter: Optimizer iteration budget.
            scale: Multiplier applied to returns before fitting (100 = percent).
            min_observations: Shortest series accepted.
        """
        if distribution not in self.DISTRIBUTIONS:
            raise InvalidOrderError(f"Unsupported distribution: {distribution}")

        self.distribution = distribution
        self.max_iter = max_iter
        self.scale = scale
        self.min_observations = min_observations

    def _validate_returns(
        self,
        returns: Union[pd.Series, np.ndarray]
    ) -> pd.Series:
        """Validate and convert returns to pandas Series."""
        if isinstance(returns, np.ndarray):
            returns = pd.Series(returns)

        returns = returns.dropna().astype(float)

        if len(returns) < self.min_observations:
            raise InsufficientDataError(
                f"Insufficient data: {len(returns)} observations. "
                f"Need at least {self.min_observations} for GARCH estimation."
            )

        return returns

    @staticmethod
    def _validate_order(p: int, q: int) -> None:
        if p < 1 or q < 0:
            raise InvalidOrderError(
                f"Invalid volatility order p={p}, q={q}: need p >= 1 and q >= 0"
            )

    def _estimate(self, returns: pd.Series, variant: VolatilityVariant, p: int, q: int):
        """Run the arch optimizer and return its result object."""
        try:
            model = arch_model(
                returns * self.scale,
                mean="Constant",
                p=p,
                q=q,
                dist=self.distribution,
                rescale=False,
                **variant.arch_options
            )
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                result = model.fit(
                    disp="off",
                    show_warning=False,
                    options={"maxiter": self.max_iter}
                )
        except Exception as e:
            raise ConvergenceError(f"{variant.value}({p},{q}) estimation failed: {e}") from e

        if result.convergence_flag != 0:
            raise ConvergenceError(
                f"{variant.value}({p},{q}) optimizer did not converge "
                f"within {self.max_iter} iterations (flag={result.convergence_flag})"
            )

        return result

    def _build_spec(
        self,
        result,
        variant: VolatilityVariant,
        p: int,
        q: int,
        n_observations: int
    ) -> VolatilityModelSpec:
        params = result.params
        omega = float(params["omega"])
        alpha = _sum_params(params, "alpha")
        beta = _sum_params(params, "beta")
        gamma = _sum_params(params, "gamma") if variant.is_asymmetric else None

        if variant is VolatilityVariant.EGARCH:
            persistence = beta
        elif variant is VolatilityVariant.TGARCH:
            # E[sigma_t] recursion of the absolute-value model
            distribution = result.model.distribution
            n_shape = distribution.num_params
            shape = params.to_numpy()[len(params) - n_shape:] if n_shape else None
            abs_mean, abs_mean_neg = absolute_moments(distribution, shape)
            persistence = alpha * abs_mean + gamma * abs_mean_neg + beta
        else:
            persistence = alpha + beta

        # EGARCH models the log variance, so its constant may be negative
        if variant is not VolatilityVariant.EGARCH and omega <= 0:
            raise ConvergenceError(f"{variant.value}({p},{q}) produced omega={omega:.3g} <= 0")
        if variant is VolatilityVariant.GARCH and persistence >= 1:
            raise ConvergenceError(
                f"GARCH({p},{q}) solution is not covariance stationary "
                f"(alpha + beta = {persistence:.4f})"
            )

        return VolatilityModelSpec(
            variant=variant,
            p=p,
            q=q,
            distribution=self.distribution,
            params={k: float(v) for k, v in params.items()},
            omega=omega,
            alpha=alpha,
            beta=beta,
            gamma=gamma,
            persistence=float(persistence),
            log_likelihood=float(result.loglikelihood),
            aic=float(result.aic),
            bic=float(result.bic),
            n_observations=n_observations,
            scale=self.scale,
        )

    def fit(
        self,
        returns: Union[pd.Series, np.ndarray],
        variant: VolatilityVariant = VolatilityVariant.GARCH,
        p: int = 1,
        q: int = 1
    ) -> VolatilityFit:
        """
        Fit one GARCH-family model.

        Args:
            returns: Series or array of returns (decimal units).
            variant: Model family.
            p: Shock (ARCH) order, >= 1.
            q: Variance (GARCH) order, >= 0.

        Returns:
            VolatilityFit with the fitted spec and conditional volatility.

        Raises:
            InvalidOrderError: p < 1 or q < 0.
            InsufficientDataError: Fewer than min_observations returns.
            ConvergenceError: Optimizer failure or inadmissible parameters.
        """
        self._validate_order(p, q)
        returns = self._validate_returns(returns)

        logger.debug(f"Fitting {variant.value}({p},{q}) on {len(returns)} observations")
        result = self._estimate(returns, variant, p, q)
        spec = self._build_spec(result, variant, p, q, len(returns))

        cond_vol = pd.Series(
            np.asarray(result.conditional_volatility, dtype=float) / self.scale,
            index=returns.index,
            name=spec.label
        )

        return VolatilityFit(spec=spec, conditional_volatility=cond_vol)

    def fit_variants(
        self,
        returns: Union[pd.Series, np.ndarray],
        variants: Sequence[VolatilityVariant] = DEFAULT_VARIANTS,
        p: int = 1,
        q: int = 1
    ) -> List[VolatilityFit]:
        """
        Fit several variants on the identical cleaned series.

        Any failing variant raises; no partial list is returned.
        """
        self._validate_order(p, q)
        returns = self._validate_returns(returns)
        return [self.fit(returns, variant, p, q) for variant in variants]

    @staticmethod
    def rank_by_aic(fits: Sequence[VolatilityFit]) -> List[VolatilityFit]:
        """
        Order fits by ascending AIC.

        Only meaningful for fits on the same sample. Ties go to the
        earlier-declared variant, then to the smaller total order, whatever
        order the fits are passed in.
        """
        if len({fit.spec.n_observations for fit in fits}) > 1:
            raise ValueError("AIC comparison requires fits on the same sample")
        declared = list(VolatilityVariant)
        return sorted(
            fits,
            key=lambda fit: (
                fit.spec.aic,
                declared.index(fit.spec.variant),
                fit.spec.p + fit.spec.q,
            )
        )

    @staticmethod
    def comparison_table(fits: Sequence[VolatilityFit]) -> pd.DataFrame:
        """Summarize fitted models, ranked by AIC."""
        ranked = VolatilityModelFitter.rank_by_aic(fits)
        rows = []
        for rank, fit in enumerate(ranked, start=1):
            spec = fit.spec
            rows.append({
                "model": spec.label,
                "rank": rank,
                "aic": spec.aic,
                "bic": spec.bic,
                "log_likelihood": spec.log_likelihood,
                "omega": spec.omega,
                "alpha": spec.alpha,
                "beta": spec.beta,
                "gamma": spec.gamma,
                "persistence": spec.persistence,
            })
        return pd.DataFrame(rows)

    def forecast_volatility(
        self,
        returns: Union[pd.Series, np.ndarray],
        variant: VolatilityVariant = VolatilityVariant.GARCH,
        horizon: int = 5,
        p: int = 1,
        q: int = 1,
        simulations: int = 1000,
        seed: int = 42
    ) -> pd.Series:
        """
        Forecast conditional volatility h steps ahead.

        GARCH uses the analytic forecast; EGARCH and TGARCH have no closed
        form beyond one step and are simulated with a fixed seed.

        Returns:
            Series of volatility forecasts (return units) indexed 1..horizon.
        """
        if horizon <= 0:
            raise ValueError(f"Forecast horizon must be positive, got {horizon}")

        self._validate_order(p, q)
        returns = self._validate_returns(returns)
        result = self._estimate(returns, variant, p, q)

        try:
            if variant is VolatilityVariant.GARCH or horizon == 1:
                forecast = result.forecast(horizon=horizon, method="analytic", reindex=False)
            else:
                forecast = result.forecast(
                    horizon=horizon,
                    method="simulation",
                    simulations=simulations,
                    random_state=np.random.RandomState(seed),
                    reindex=False
                )
        except Exception as e:
            raise ConvergenceError(f"{variant.value}({p},{q}) forecast failed: {e}") from e

        variance = np.asarray(forecast.variance.iloc[-1], dtype=float)
        return pd.Series(
            np.sqrt(variance) / self.scale,
            index=pd.RangeIndex(1, horizon + 1, name="horizon"),
            name=f"{variant.value}({p},{q})"
        )
