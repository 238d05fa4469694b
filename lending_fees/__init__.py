"""
Daily fee / revenue accounting for Compound v2-style lending markets.

Layout:
    - config: protocol table, RPC endpoints, day windows
    - chain: block-by-timestamp and web3 transport
    - adapters: market directory, AccrueInterest harvesting and decoding
    - price_cache: DefiLlama historical prices
    - fees: window resolver, aggregator, runner, pandas reports
"""
from lending_fees.errors import (
    EventDecodeError,
    FeeComputationError,
    LogFetchError,
    MarketAlignmentError,
    UnknownMarketError,
    WindowResolutionError,
)
from lending_fees.fees import DailyFeesResult, aggregate_fees, compute_daily_fees

__version__ = "0.1.0"

__all__ = [
    "DailyFeesResult",
    "aggregate_fees",
    "compute_daily_fees",
    "EventDecodeError",
    "FeeComputationError",
    "LogFetchError",
    "MarketAlignmentError",
    "UnknownMarketError",
    "WindowResolutionError",
]
