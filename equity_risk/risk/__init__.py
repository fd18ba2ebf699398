"""
Risk metrics and calculations module.

Provides:
- Historical Value at Risk (VaR) and violation backtesting
- GARCH / EGARCH / TGARCH conditional volatility models
- Rolling window volatility
"""

from .var import VaRBacktester, VaRBacktestResult, kupiec_test
from .garch import (
    VolatilityModelFitter,
    VolatilityModelSpec,
    VolatilityFit,
    VolatilityVariant,
    absolute_moments,
)
from .volatility import RollingVolatilityEstimator

__all__ = [
    # VaR
    "VaRBacktester",
    "VaRBacktestResult",
    "kupiec_test",
    # GARCH family
    "VolatilityModelFitter",
    "VolatilityModelSpec",
    "VolatilityFit",
    "VolatilityVariant",
    "absolute_moments",
    # Rolling
    "RollingVolatilityEstimator",
]
