"""
Daily fee pipeline: window resolution, aggregation, orchestration, reporting.
"""
from lending_fees.fees.aggregator import aggregate_fees
from lending_fees.fees.models import (
    AccrualRecord,
    BlockWindow,
    DailyFeesResult,
    FeeContext,
    FeeTotals,
    Market,
    MarketBook,
    PriceQuote,
)
from lending_fees.fees.runner import build_adapter, build_context, compute_daily_fees, run_fee_window
from lending_fees.fees.window import resolve_window

__all__ = [
    "AccrualRecord",
    "BlockWindow",
    "DailyFeesResult",
    "FeeContext",
    "FeeTotals",
    "Market",
    "MarketBook",
    "PriceQuote",
    "aggregate_fees",
    "build_adapter",
    "build_context",
    "compute_daily_fees",
    "resolve_window",
    "run_fee_window",
]
