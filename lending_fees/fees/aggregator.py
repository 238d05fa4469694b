"""
Fee aggregation: one fold over decoded AccrueInterest records.

Each record's interest is converted to USD with the underlying's price and
decimals; the reserve-factor share of it is protocol revenue. Records that
cannot be priced are skipped and counted by reason, never raised. A missing
reserve factor keeps the fees and counts the record as revenue_unknown.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping

from lending_fees.fees.models import (
    AccrualRecord,
    FeeTotals,
    MarketBook,
    MarketFees,
    PriceQuote,
    coin_id,
    market_key,
)

logger = logging.getLogger(__name__)

SKIP_NO_UNDERLYING = "no_underlying"
SKIP_NO_PRICE = "no_price"
REVENUE_NO_RESERVE_FACTOR = "no_reserve_factor"


def to_units(raw: int, decimals: int) -> float:
    """Raw integer amount -> float whole units (exact decimal shift, one rounding)."""
    return float(Decimal(int(raw)).scaleb(-int(decimals)))


def aggregate_fees(
    records: Iterable[AccrualRecord],
    markets: MarketBook,
    prices: Mapping[str, PriceQuote],
    price_chain: str,
) -> FeeTotals:
    """
    Sum USD fees and protocol revenue over records.

    Raises UnknownMarketError for a record whose market is not in the book.
    """
    totals = FeeTotals()
    warned_rf = set()

    for rec in records:
        totals.records_seen += 1
        market = markets.lookup(rec.market)

        if not market.underlying:
            totals.skipped[SKIP_NO_UNDERLYING] += 1
            continue

        quote = prices.get(coin_id(price_chain, market.underlying))
        if quote is None:
            totals.skipped[SKIP_NO_PRICE] += 1
            continue

        reserve_fraction = market.reserve_factor_fraction
        if reserve_fraction is None:
            totals.revenue_unknown[REVENUE_NO_RESERVE_FACTOR] += 1
            reserve_fraction = 0.0
        elif not 0.0 <= reserve_fraction <= 1.0 and market.address not in warned_rf:
            warned_rf.add(market.address)
            logger.warning(f"[Fees] reserve factor {reserve_fraction} out of [0, 1] for {market.address}")

        interest_usd = to_units(rec.interest_accumulated, quote.decimals) * quote.price
        revenue_usd = interest_usd * reserve_fraction

        totals.daily_protocol_fees += interest_usd
        totals.daily_protocol_revenue += revenue_usd

        per = totals.per_market.setdefault(market_key(market.address), MarketFees())
        per.fees_usd += interest_usd
        per.revenue_usd += revenue_usd
        per.records += 1

    if totals.skipped:
        logger.info(
            f"[Fees] skipped {totals.skipped_records}/{totals.records_seen} records: {dict(totals.skipped)}"
        )
    if totals.revenue_unknown:
        logger.warning(
            f"[Fees] revenue unknown for {sum(totals.revenue_unknown.values())} priced records "
            f"(fees counted, revenue 0): {dict(totals.revenue_unknown)}"
        )
    return totals
