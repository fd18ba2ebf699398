"""
Price data client using yfinance for fetching adjusted close prices.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd
import yfinance as yf

from equity_risk.exceptions import DataUnavailableError

logger = logging.getLogger(__name__)

DateLike = Union[str, pd.Timestamp, None]


def _normalize_symbols(symbols: Iterable[str]) -> list[str]:
    """Upper-case and de-duplicate symbols, keeping request order."""
    seen = []
    for symbol in symbols:
        symbol = str(symbol).strip().upper()
        if symbol and symbol not in seen:
            seen.append(symbol)
    return seen


def filter_date_range(
    prices: Union[pd.Series, pd.DataFrame],
    start: DateLike = None,
    end: DateLike = None
) -> Union[pd.Series, pd.DataFrame]:
    """
    Restrict a date-indexed series to an inclusive calendar range.

    Args:
        prices: Series or DataFrame with a DatetimeIndex.
        start: First date to keep (ISO-8601, inclusive). None keeps everything before end.
        end: Last date to keep (ISO-8601, inclusive). None keeps everything after start.

    Returns:
        The rows whose date falls within [start, end].

    Example:
        >>> year_2020 = filter_date_range(prices, "2020-01-01", "2020-12-31")
    """
    start_ts = pd.Timestamp(start) if start is not None else None
    end_ts = pd.Timestamp(end) if end is not None else None

    if start_ts is not None and end_ts is not None and start_ts > end_ts:
        raise ValueError(f"Start date {start_ts.date()} is after end date {end_ts.date()}")

    index = pd.DatetimeIndex(prices.index)
    if index.tz is not None:
        index = index.tz_localize(None)

    dates = index.normalize()
    mask = np.ones(len(dates), dtype=bool)
    if start_ts is not None:
        mask &= dates >= start_ts.normalize()
    if end_ts is not None:
        mask &= dates <= end_ts.normalize()

    return prices[mask]


class PriceClient:
    """Client for fetching adjusted close prices from yfinance."""

    PRICE_COLUMN = "Adj Close"
    FALLBACK_COLUMN = "Close"

    def __init__(self, progress: bool = False):
        """
        Initialize the price client.

        Args:
            progress: Show the yfinance download progress bar.
        """
        self.progress = progress

    def _extract_close(self, data: pd.DataFrame, symbols: list[str]) -> pd.DataFrame:
        """Pull the adjusted close panel out of a yfinance download result."""
        if data.columns.nlevels == 1:
            for column in (self.PRICE_COLUMN, self.FALLBACK_COLUMN):
                if column in data.columns:
                    return data[[column]].rename(columns={column: symbols[0]})
        else:
            fields = data.columns.get_level_values(0)
            for column in (self.PRICE_COLUMN, self.FALLBACK_COLUMN):
                if column in fields:
                    close = data[column].copy()
                    close.columns.name = None
                    return close

        raise DataUnavailableError(
            f"Expected '{self.PRICE_COLUMN}' or '{self.FALLBACK_COLUMN}' in yfinance download result"
        )

    def fetch_adjusted_close(
        self,
        symbols: Iterable[str],
        start: DateLike = None,
        end: DateLike = None
    ) -> pd.DataFrame:
        """
        Fetch adjusted close prices for several symbols in one download.

        Both ends of the date range are inclusive. The fetch is attempted
        once; any provider failure surfaces as DataUnavailableError.

        Args:
            symbols: Stock symbols (e.g., ["AAPL", "MSFT"]).
            start: Start date (YYYY-MM-DD), inclusive.
            end: End date (YYYY-MM-DD), inclusive.

        Returns:
            DataFrame with one column per symbol, sorted unique DatetimeIndex.

        Raises:
            DataUnavailableError: The provider failed or a symbol has no prices.
        """
        requested = _normalize_symbols(symbols)
        if not requested:
            raise ValueError("At least one symbol is required")

        # yfinance treats end as exclusive
        provider_end = None
        if end is not None:
            provider_end = (pd.Timestamp(end) + pd.Timedelta(days=1)).strftime("%Y-%m-%d")

        logger.info(f"Downloading prices for {', '.join(requested)} ({start} to {end})")

        try:
            data = yf.download(
                tickers=requested,
                start=start,
                end=provider_end,
                progress=self.progress,
                auto_adjust=False,
                actions=False,
                group_by="column",
            )
        except Exception as e:
            raise DataUnavailableError(f"Price download failed for {requested}: {e}") from e

        if data is None or data.empty:
            raise DataUnavailableError(
                f"No price data returned for {requested} between {start} and {end}"
            )

        prices = self._extract_close(data, requested)
        prices.index = pd.to_datetime(prices.index)
        if prices.index.tz is not None:
            prices.index = prices.index.tz_localize(None)
        prices = prices[~prices.index.duplicated(keep="last")].sort_index()
        prices = filter_date_range(prices, start, end)

        missing = [s for s in requested if s not in prices.columns or prices[s].dropna().empty]
        if missing:
            raise DataUnavailableError(
                f"No prices available for {', '.join(missing)} between {start} and {end}"
            )

        return prices[requested].astype(float)

    def get_price_series(
        self,
        symbol: str,
        start: DateLike = None,
        end: DateLike = None
    ) -> pd.Series:
        """
        Fetch the adjusted close series for a single symbol.

        Args:
            symbol: Stock symbol.
            start: Start date (inclusive).
            end: End date (inclusive).

        Returns:
            Series of prices with missing values dropped, named after the symbol.
        """
        prices = self.fetch_adjusted_close([symbol], start=start, end=end)
        return prices.iloc[:, 0].dropna()


def export_csv(frame: Union[pd.Series, pd.DataFrame], path: Union[str, Path]) -> Path:
    """
    Write a price or return panel to CSV.

    One row per date (ISO-8601), one column per symbol, header row with
    symbol names.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(frame, pd.Series):
        frame = frame.to_frame(name=frame.name or "value")

    out = frame.copy()
    out.index = pd.DatetimeIndex(out.index).strftime("%Y-%m-%d")
    out.index.name = "Date"
    out.to_csv(path)

    logger.info(f"Saved {len(out)} rows to {path}")
    return path


def load_csv(path: Union[str, Path]) -> pd.DataFrame:
    """Read a panel previously written by export_csv."""
    frame = pd.read_csv(path, index_col=0, parse_dates=True)
    frame.index.name = None
    return frame.sort_index()
