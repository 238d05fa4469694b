"""
Daily fee run: window + markets -> prices -> logs -> records -> totals.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from lending_fees.adapters.base import FeeAdapter
from lending_fees.adapters.compound_v2_style import CompoundV2FeeAdapter
from lending_fees.chain.client import Web3ChainClient
from lending_fees.config.rpc_pool import get_web3_with_limiter
from lending_fees.config.settings import FeeAdapterConfig
from lending_fees.errors import WindowResolutionError
from lending_fees.fees.aggregator import aggregate_fees
from lending_fees.fees.models import DailyFeesResult, FeeContext, FeeTotals
from lending_fees.fees.window import resolve_window
from lending_fees.price_cache.llama_prices import PriceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeRun:
    context: FeeContext
    totals: FeeTotals
    result: DailyFeesResult
    failed_markets: List[str] = field(default_factory=list)


def build_adapter(
    config: FeeAdapterConfig,
    rpc_url: Optional[str] = None,
    max_workers: int = 8,
    log_chunk_size: Optional[int] = None,
) -> CompoundV2FeeAdapter:
    w3, limiter = get_web3_with_limiter(config.chain, rpc_url=rpc_url)
    client = Web3ChainClient(
        w3,
        config.chain,
        rate_limiter=limiter,
        max_workers=max_workers,
        log_chunk_size=log_chunk_size,
    )
    return CompoundV2FeeAdapter(client, config, max_workers=max_workers)


def build_context(timestamp: int, adapter: FeeAdapter, price_source: PriceSource) -> FeeContext:
    config = adapter.config
    if config.start and timestamp < config.start:
        raise WindowResolutionError(
            f"{config.name}: window end {timestamp} is before protocol start {config.start}"
        )

    with ThreadPoolExecutor(max_workers=2) as executor:
        window_f = executor.submit(resolve_window, adapter.client, timestamp, config.window_seconds)
        markets_f = executor.submit(adapter.resolve_markets)
        window = window_f.result()
        markets = markets_f.result()

    prices = price_source.get_prices(markets.price_ids(config.price_chain), timestamp)
    return FeeContext(
        current_timestamp=timestamp,
        window=window,
        markets=markets,
        prices=prices,
    )


def run_fee_window(timestamp: int, adapter: FeeAdapter, price_source: PriceSource) -> FeeRun:
    context = build_context(timestamp, adapter, price_source)
    raw_logs = adapter.fetch_events(context.markets, context.start_block, context.end_block)
    records = adapter.decode_all(raw_logs)
    totals = aggregate_fees(records, context.markets, context.prices, adapter.config.price_chain)
    result = DailyFeesResult.from_totals(timestamp, totals)

    logger.info(
        f"[Fees] {adapter.config.name} @ {timestamp}: fees=${result.daily_fees:,.2f} "
        f"revenue=${result.daily_revenue:,.2f} from {totals.records_seen} records"
    )
    return FeeRun(
        context=context,
        totals=totals,
        result=result,
        failed_markets=list(getattr(adapter, "failed_markets", [])),
    )


def compute_daily_fees(timestamp: int, adapter: FeeAdapter, price_source: PriceSource) -> DailyFeesResult:
    """Fees, revenue, holders revenue and supply-side revenue for the window ending at timestamp."""
    return run_fee_window(timestamp, adapter, price_source).result
