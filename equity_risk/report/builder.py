"""
Report Builder.

Runs the per-symbol analysis pipeline and assembles its results:
- returns:    log returns from adjusted close prices
- arima:      ARIMA order selection and h-step forecast
- volatility: GARCH / EGARCH / TGARCH fits ranked by AIC
- rolling:    trailing-window volatility
- var:        historical VaR and violation backtest

Symbols are independent: a failing stage halts only its own symbol and is
recorded, while results for the other symbols are kept.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Sequence, Tuple
import logging

import pandas as pd

from equity_risk.data.returns import log_returns
from equity_risk.exceptions import AnalyticsError
from equity_risk.forecasting import ARIMAForecaster, ForecastResult
from equity_risk.risk import (
    RollingVolatilityEstimator,
    VaRBacktester,
    VaRBacktestResult,
    VolatilityFit,
    VolatilityModelFitter,
    VolatilityVariant,
)
from equity_risk.report import tables

logger = logging.getLogger(__name__)

STAGES = ("returns", "arima", "volatility", "rolling", "var")


@dataclass(frozen=True)
class StageFailure:
    """A pipeline stage that raised for one symbol."""
    symbol: str
    stage: str
    error_type: str
    message: str

    def __str__(self) -> str:
        return f"{self.symbol} [{self.stage}] {self.error_type}: {self.message}"


@dataclass(frozen=True)
class SymbolAnalysis:
    """
    Results for one symbol.

    Stages after a failure are left as None; `completed` lists the
    stages that finished.
    """
    symbol: str
    returns: Optional[pd.Series] = field(default=None, repr=False)
    forecast: Optional[ForecastResult] = field(default=None, repr=False)
    volatility_fits: Tuple[VolatilityFit, ...] = field(default=(), repr=False)
    rolling_volatility: Optional[pd.Series] = field(default=None, repr=False)
    var_backtest: Optional[VaRBacktestResult] = field(default=None, repr=False)
    completed: Tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.completed == STAGES

    @property
    def best_volatility_fit(self) -> Optional[VolatilityFit]:
        if not self.volatility_fits:
            return None
        return self.volatility_fits[0]


@dataclass(frozen=True)
class Report:
    """
    Assembled report across symbols.

    Attributes:
        analyses: Per-symbol results (including partial ones)
        failures: Stage failures, in the order they occurred
        horizon: ARIMA forecast horizon
        window: Rolling volatility window
        alpha: VaR tail probability
    """
    analyses: Dict[str, SymbolAnalysis]
    failures: Tuple[StageFailure, ...]
    horizon: int
    window: int
    alpha: float

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def symbols(self) -> List[str]:
        return list(self.analyses)

    def summary_statistics(self) -> pd.DataFrame:
        return tables.summary_statistics_table(self.analyses)

    def arima_summary(self) -> pd.DataFrame:
        return tables.arima_table(self.analyses)

    def model_comparison(self) -> pd.DataFrame:
        return tables.model_comparison_table(self.analyses)

    def var_summary(self) -> pd.DataFrame:
        return tables.var_table(self.analyses)

    def failure_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            [vars(f) for f in self.failures],
            columns=["symbol", "stage", "error_type", "message"]
        )


class ReportBuilder:
    """
    Per-symbol analysis pipeline.

    Example:
        >>> builder = ReportBuilder(horizon=30, window=30, alpha=0.05)
        >>> report = builder.build(prices)
        >>> print(report.model_comparison())
        >>> for failure in report.failures:
        ...     print(failure)
    """

    def __init__(
        self,
        horizon: int = 30,
        window: int = 30,
        alpha: float = 0.05,
        variants: Sequence[VolatilityVariant] = VolatilityModelFitter.DEFAULT_VARIANTS,
        garch_order: Tuple[int, int] = (1, 1),
        forecaster: Optional[ARIMAForecaster] = None,
        fitter: Optional[VolatilityModelFitter] = None,
        backtester: Optional[VaRBacktester] = None
    ):
        """
        Initialize the report builder.

        Args:
            horizon: ARIMA forecast horizon in business days.
            window: Rolling volatility window.
            alpha: VaR tail probability.
            variants: GARCH-family variants to fit and compare.
            garch_order: (p, q) used for every variant.
            forecaster: ARIMAForecaster instance.
            fitter: VolatilityModelFitter instance.
            backtester: VaRBacktester instance.
        """
        if horizon <= 0:
            raise ValueError(f"Forecast horizon must be positive, got {horizon}")
        if window < 2:
            raise ValueError(f"Rolling window must be at least 2, got {window}")
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")

        self.horizon = horizon
        self.window = window
        self.alpha = alpha
        self.variants = tuple(variants)
        self.garch_order = garch_order
        self.forecaster = forecaster or ARIMAForecaster()
        self.fitter = fitter or VolatilityModelFitter()
        self.backtester = backtester or VaRBacktester()

    def _run_stage(self, stage: str, prices: pd.Series, results: dict):
        """Compute one stage from the prices and earlier stage results."""
        if stage == "returns":
            return log_returns(prices)
        returns = results["returns"]
        if stage == "arima":
            return self.forecaster.forecast(returns, horizon=self.horizon)
        if stage == "volatility":
            p, q = self.garch_order
            fits = self.fitter.fit_variants(returns, self.variants, p=p, q=q)
            return tuple(self.fitter.rank_by_aic(fits))
        if stage == "rolling":
            return RollingVolatilityEstimator(returns, window=self.window).to_series()
        if stage == "var":
            return self.backtester.backtest(returns, alpha=self.alpha)
        raise ValueError(f"Unknown stage: {stage}")

    def analyze_symbol(
        self,
        symbol: str,
        prices: pd.Series
    ) -> Tuple[SymbolAnalysis, Optional[StageFailure]]:
        """
        Run every stage for one symbol, stopping at the first failure.

        Returns:
            (analysis with the completed stages, failure or None)
        """
        results: dict = {}
        failure = None

        for stage in STAGES:
            logger.info(f"{symbol}: running {stage} stage")
            try:
                results[stage] = self._run_stage(stage, prices.dropna(), results)
            except AnalyticsError as e:
                failure = StageFailure(
                    symbol=symbol,
                    stage=stage,
                    error_type=type(e).__name__,
                    message=str(e)
                )
                logger.warning(f"{symbol}: {stage} stage failed - {e}")
                break

        analysis = SymbolAnalysis(
            symbol=symbol,
            returns=results.get("returns"),
            forecast=results.get("arima"),
            volatility_fits=results.get("volatility", ()),
            rolling_volatility=results.get("rolling"),
            var_backtest=results.get("var"),
            completed=tuple(s for s in STAGES if s in results),
        )
        return analysis, failure

    def build(self, prices: pd.DataFrame) -> Report:
        """
        Analyze every symbol (column) of a price panel.

        Args:
            prices: Adjusted close prices, one column per symbol.

        Returns:
            Report with all per-symbol results and any stage failures.
        """
        analyses = {}
        failures = []

        for symbol in prices.columns:
            analysis, failure = self.analyze_symbol(str(symbol), prices[symbol])
            analyses[str(symbol)] = analysis
            if failure is not None:
                failures.append(failure)

        logger.info(
            f"Report built for {len(analyses)} symbols "
            f"({len(analyses) - len(failures)} complete, {len(failures)} failed)"
        )

        return Report(
            analyses=analyses,
            failures=tuple(failures),
            horizon=self.horizon,
            window=self.window,
            alpha=self.alpha
        )
