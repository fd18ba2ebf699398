"""
ARIMA Forecaster.

Selects and fits ARIMA(p,d,q) models on return series:
- Differencing order chosen by a stationarity test (KPSS or ADF)
- AR/MA orders chosen by minimum AICc over a bounded grid
- Maximum likelihood fitting via statsmodels
- h-step-ahead point forecasts with confidence bands
"""

from dataclasses import dataclass, field
from typing import Optional, Union, List, Dict, Tuple
import logging
import warnings

import numpy as np
import pandas as pd
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.stattools import adfuller, kpss

from equity_risk.exceptions import (
    ConvergenceError,
    InsufficientDataError,
    InvalidOrderError,
    NonStationaryError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ARIMASpec:
    """
    A fitted ARIMA specification.

    Attributes:
        order: (p, d, q) orders
        params: Fitted coefficients keyed by statsmodels parameter name
        sigma2: Residual (innovation) variance
        log_likelihood: Maximized log-likelihood
        aic: Akaike Information Criterion
        aicc: Small-sample corrected AIC
        bic: Bayesian Information Criterion
        n_observations: Number of observations used in the fit
    """
    order: Tuple[int, int, int]
    params: Dict[str, float]
    sigma2: float
    log_likelihood: float
    aic: float
    aicc: float
    bic: float
    n_observations: int

    @property
    def label(self) -> str:
        p, d, q = self.order
        return f"ARIMA({p},{d},{q})"


@dataclass(frozen=True)
class ForecastResult:
    """
    h-step-ahead ARIMA forecast.

    Attributes:
        spec: The fitted specification that produced the forecast
        horizon: Number of forecast steps
        confidence: Coverage of the interval bounds (e.g., 0.95)
        frame: DataFrame with 'forecast', 'lower' and 'upper' columns,
               indexed by forecast date
    """
    spec: ARIMASpec
    horizon: int
    confidence: float
    frame: pd.DataFrame = field(repr=False)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def interval_width(self) -> pd.Series:
        return self.frame["upper"] - self.frame["lower"]

    def points(self) -> List[tuple]:
        """Return (date, point, lower, upper) tuples in horizon order."""
        return [
            (date, row.forecast, row.lower, row.upper)
            for date, row in zip(self.frame.index, self.frame.itertuples(index=False))
        ]


class ARIMAForecaster:
    """
    ARIMA model selection and forecasting.

    Every call is a pure function of the input series and the search
    configuration given at construction; no fitted state is kept.

    Example:
        >>> forecaster = ARIMAForecaster(max_p=2, max_q=2)
        >>> result = forecaster.forecast(returns, horizon=30)
        >>> print(result.spec.label, result.frame.head())
    """

    STATIONARITY_TESTS = ("kpss", "adf")

    def __init__(
        self,
        max_p: int = 3,
        max_q: int = 3,
        max_d: int = 2,
        stationarity_test: str = "kpss",
        significance: float = 0.05,
        min_observations: int = 10
    ):
        """
        Initialize the forecaster.

        Args:
            max_p: Largest AR order searched.
            max_q: Largest MA order searched.
            max_d: Differencing cap; above it the series is declared non-stationary.
            stationarity_test: 'kpss' (null: stationary) or 'adf' (null: unit root).
            significance: Test size used for the stationarity decision.
            min_observations: Shortest series accepted.
        """
        if min(max_p, max_q, max_d) < 0:
            raise InvalidOrderError(
                f"Search bounds must be non-negative, got p<={max_p}, d<={max_d}, q<={max_q}"
            )
        if stationarity_test not in self.STATIONARITY_TESTS:
            raise InvalidOrderError(f"Unknown stationarity test: {stationarity_test}")

        self.max_p = max_p
        self.max_q = max_q
        self.max_d = max_d
        self.stationarity_test = stationarity_test
        self.significance = significance
        self.min_observations = min_observations

    def _validate_series(
        self,
        series: Union[pd.Series, np.ndarray]
    ) -> pd.Series:
        """Drop missing values and check the length."""
        if isinstance(series, np.ndarray):
            series = pd.Series(series)

        series = series.dropna().astype(float)

        if len(series) < self.min_observations:
            raise InsufficientDataError(
                f"Insufficient data: {len(series)} observations. "
                f"Need at least {self.min_observations} for ARIMA."
            )

        return series

    def is_stationary(self, values: np.ndarray) -> bool:
        """Run the configured stationarity test on a clean array."""
        if np.ptp(values) == 0:
            return True

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            try:
                if self.stationarity_test == "kpss":
                    _, p_value, _, _ = kpss(values, regression="c", nlags="auto")
                    return p_value > self.significance
                p_value = adfuller(values, autolag="AIC")[1]
                return p_value < self.significance
            except (ValueError, np.linalg.LinAlgError) as e:
                raise InsufficientDataError(
                    f"Stationarity test failed on {len(values)} observations: {e}"
                ) from e

    def select_differencing(self, series: Union[pd.Series, np.ndarray]) -> int:
        """
        Choose the smallest differencing order giving a stationary series.

        Returns:
            d in [0, max_d].

        Raises:
            NonStationaryError: No order up to max_d passes the test.
        """
        values = self._validate_series(series).to_numpy()

        for d in range(self.max_d + 1):
            differenced = np.diff(values, n=d) if d else values
            if len(differenced) < 3:
                raise InsufficientDataError(
                    f"Only {len(differenced)} observations left after differencing {d} times"
                )
            if self.is_stationary(differenced):
                logger.debug(f"Selected d={d} by {self.stationarity_test.upper()} test")
                return d

        raise NonStationaryError(
            f"Series is not stationary after differencing up to d={self.max_d}"
        )

    def _fit_order(self, values: np.ndarray, order: Tuple[int, int, int]):
        """
        Fit one ARIMA order by maximum likelihood.

        Raises:
            ConvergenceError: statsmodels could not build or estimate the model.
        """
        p, d, q = order
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                model = ARIMA(values, order=order, trend="c" if d == 0 else "n")
                return model.fit()
        except Exception as e:
            raise ConvergenceError(f"ARIMA({p},{d},{q}) estimation failed: {e}") from e

    def _to_spec(self, result, order: Tuple[int, int, int]) -> Optional[ARIMASpec]:
        """Convert a statsmodels result to an ARIMASpec, or None if AICc is undefined."""
        k = len(result.params)
        n = int(getattr(result, "nobs_effective", result.nobs))
        if n - k - 1 <= 0 or not np.isfinite(result.llf):
            return None

        aic = -2.0 * result.llf + 2.0 * k
        aicc = aic + 2.0 * k * (k + 1) / (n - k - 1)
        params = dict(zip(result.model.param_names, np.asarray(result.params, dtype=float)))

        return ARIMASpec(
            order=order,
            params=params,
            sigma2=float(params.get("sigma2", np.nan)),
            log_likelihood=float(result.llf),
            aic=float(aic),
            aicc=float(aicc),
            bic=float(result.bic),
            n_observations=n,
        )

    def select_order(self, series: Union[pd.Series, np.ndarray]) -> ARIMASpec:
        """
        Search (p, q) for the minimum-AICc model at the selected d.

        Candidates are visited in increasing (p, q) order, so on ties the
        simpler model wins.

        Returns:
            The best ARIMASpec.

        Raises:
            InsufficientDataError: No candidate can be fitted on a series this short.
            ConvergenceError: Every candidate failed to estimate.
            NonStationaryError: Differencing cap exceeded.
        """
        series = self._validate_series(series)
        values = series.to_numpy()
        d = self.select_differencing(series)

        best = None
        failure = None
        for p in range(self.max_p + 1):
            for q in range(self.max_q + 1):
                if len(values) <= p + d + q + 1:
                    continue
                try:
                    result = self._fit_order(values, (p, d, q))
                except ConvergenceError as e:
                    logger.debug(f"Skipping ARIMA({p},{d},{q}): {e}")
                    failure = e
                    continue
                spec = self._to_spec(result, (p, d, q))
                if spec is None:
                    continue
                if best is None or spec.aicc < best.aicc:
                    best = spec

        if best is None and failure is not None:
            raise ConvergenceError(
                f"No ARIMA candidate could be estimated on {len(values)} observations"
            ) from failure
        if best is None:
            raise InsufficientDataError(
                f"No ARIMA candidate could be fitted on {len(values)} observations"
            )

        logger.info(f"Selected {best.label} (AICc={best.aicc:.2f})")
        return best

    def fit(
        self,
        series: Union[pd.Series, np.ndarray],
        order: Optional[Tuple[int, int, int]] = None
    ) -> ARIMASpec:
        """
        Fit a fixed order, or select one when order is None.

        Raises:
            InvalidOrderError: A negative order.
            InsufficientDataError: The series does not exceed p + d + q + 1.
            ConvergenceError: The fixed order could not be estimated.
        """
        if order is None:
            return self.select_order(series)

        p, d, q = order
        if min(p, d, q) < 0:
            raise InvalidOrderError(f"ARIMA orders must be non-negative, got {order}")

        series = self._validate_series(series)
        if len(series) <= p + d + q + 1:
            raise InsufficientDataError(
                f"Insufficient data: {len(series)} observations for ARIMA{tuple(order)}"
            )

        result = self._fit_order(series.to_numpy(), (p, d, q))
        spec = self._to_spec(result, (p, d, q))
        if spec is None:
            raise InsufficientDataError(
                f"Too few observations to score ARIMA{tuple(order)}"
            )
        return spec

    def forecast(
        self,
        series: Union[pd.Series, np.ndarray],
        horizon: int = 30,
        order: Optional[Tuple[int, int, int]] = None,
        confidence: float = 0.95
    ) -> ForecastResult:
        """
        Forecast the next `horizon` values.

        Args:
            series: Return series (DatetimeIndex gives business-day forecast dates).
            horizon: Number of steps ahead, must be positive.
            order: Fixed (p, d, q); selected automatically when None.
            confidence: Coverage of the interval bounds.

        Returns:
            ForecastResult with exactly `horizon` rows.

        Example:
            >>> result = forecaster.forecast(returns, horizon=3)
            >>> result.interval_width.is_monotonic_increasing
        """
        if horizon <= 0:
            raise ValueError(f"Forecast horizon must be positive, got {horizon}")
        if not 0 < confidence < 1:
            raise ValueError(f"Confidence must be in (0, 1), got {confidence}")

        series = self._validate_series(series)
        spec = self.fit(series, order=order)

        result = self._fit_order(series.to_numpy(), spec.order)
        try:
            prediction = result.get_forecast(steps=horizon)
            mean = np.asarray(prediction.predicted_mean, dtype=float)
            bounds = np.asarray(prediction.conf_int(alpha=1 - confidence), dtype=float)
        except Exception as e:
            raise ConvergenceError(f"{spec.label} forecast failed: {e}") from e

        if isinstance(series.index, pd.DatetimeIndex):
            index = pd.bdate_range(
                start=series.index[-1] + pd.offsets.BDay(1), periods=horizon
            )
        else:
            index = pd.RangeIndex(len(series), len(series) + horizon)

        frame = pd.DataFrame(
            {"forecast": mean, "lower": bounds[:, 0], "upper": bounds[:, 1]},
            index=index
        )

        return ForecastResult(
            spec=spec,
            horizon=horizon,
            confidence=confidence,
            frame=frame
        )
