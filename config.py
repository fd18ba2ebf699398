"""
Configuration management for the Equity Volatility & VaR report.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: str) -> list:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(name, default)
    return [item.strip().upper() for item in raw.split(",") if item.strip()]


class Config:
    """Main configuration class."""

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.resolve()
    DATA_DIR = PROJECT_ROOT / "data"
    REPORT_DIR = Path(os.getenv("REPORT_DIR", str(DATA_DIR / "reports")))

    # Market data
    SYMBOLS = _env_list("REPORT_SYMBOLS", "AAPL,MSFT,NVDA")
    START_DATE = os.getenv("REPORT_START_DATE", "2015-01-01")
    END_DATE = os.getenv("REPORT_END_DATE", "2024-12-31")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Forecasting
    FORECAST_HORIZON = int(os.getenv("FORECAST_HORIZON", "30"))
    ARIMA_MAX_P = int(os.getenv("ARIMA_MAX_P", "3"))
    ARIMA_MAX_Q = int(os.getenv("ARIMA_MAX_Q", "3"))
    ARIMA_MAX_D = int(os.getenv("ARIMA_MAX_D", "2"))

    # Risk Parameters
    ROLLING_WINDOW = int(os.getenv("ROLLING_WINDOW", "30"))
    VAR_ALPHA = float(os.getenv("VAR_ALPHA", "0.05"))
    GARCH_ORDER = (int(os.getenv("GARCH_P", "1")), int(os.getenv("GARCH_Q", "1")))
    GARCH_DISTRIBUTION = os.getenv("GARCH_DISTRIBUTION", "normal")

    @classmethod
    def validate(cls):
        """Validate critical configuration."""
        problems = []

        if not cls.SYMBOLS:
            problems.append("REPORT_SYMBOLS is empty - nothing to analyze")
        if not 0 < cls.VAR_ALPHA < 1:
            problems.append(f"VAR_ALPHA must be in (0, 1), got {cls.VAR_ALPHA}")
        if cls.ROLLING_WINDOW < 2:
            problems.append(f"ROLLING_WINDOW must be at least 2, got {cls.ROLLING_WINDOW}")
        if cls.FORECAST_HORIZON <= 0:
            problems.append(f"FORECAST_HORIZON must be positive, got {cls.FORECAST_HORIZON}")
        if cls.START_DATE > cls.END_DATE:
            problems.append(
                f"REPORT_START_DATE {cls.START_DATE} is after REPORT_END_DATE {cls.END_DATE}"
            )

        return problems
