"""
Exceptions raised by the fee pipeline.

Everything here is fatal for the window being computed: callers get either a
complete result or one of these, never a partial sum.
"""


class FeeComputationError(RuntimeError):
    """Base class for run-aborting fee pipeline failures."""


class WindowResolutionError(FeeComputationError):
    """Block range for the window could not be resolved or is inconsistent."""


class MarketAlignmentError(FeeComputationError):
    """Market metadata sequences do not line up with the market list."""


class LogFetchError(FeeComputationError):
    """Fetching AccrueInterest logs failed for a market."""

    def __init__(self, market: str, cause: BaseException):
        super().__init__(f"log fetch failed for market {market}: {cause}")
        self.market = market
        self.cause = cause


class EventDecodeError(FeeComputationError):
    """A log entry does not match the AccrueInterest layout."""


class UnknownMarketError(FeeComputationError):
    """An accrual record references a market outside the market book."""

    def __init__(self, market: str):
        super().__init__(f"accrual record references unknown market {market}")
        self.market = market
