"""
Error taxonomy for the analytics pipeline.

Every stage raises one of these to its caller; nothing is swallowed or
replaced with default values. Errors that describe a bad input value also
derive from ValueError so callers validating input can catch them the usual way.
"""


class AnalyticsError(Exception):
    """Base class for all pipeline errors."""


class DataUnavailableError(AnalyticsError):
    """The market-data provider cannot supply the requested symbol or range."""


class InsufficientDataError(AnalyticsError, ValueError):
    """A series is too short for the requested statistic or model order."""


class InvalidPriceError(AnalyticsError, ValueError):
    """A price series holds a zero or negative price."""


class NonStationaryError(AnalyticsError):
    """No differencing order up to the cap makes the series stationary."""


class ConvergenceError(AnalyticsError):
    """An optimizer failed to converge to an admissible solution."""


class InvalidOrderError(AnalyticsError, ValueError):
    """A model was configured with an invalid order or option."""


class EmptySeriesError(AnalyticsError, ValueError):
    """A statistic was requested on a zero-length series."""


__all__ = [
    "AnalyticsError",
    "DataUnavailableError",
    "InsufficientDataError",
    "InvalidPriceError",
    "NonStationaryError",
    "ConvergenceError",
    "InvalidOrderError",
    "EmptySeriesError",
]
