from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

from lending_fees.config.time import to_date
from lending_fees.fees.models import DailyFeesResult, FeeTotals, MarketBook

BREAKDOWN_COLUMNS = ["market", "underlying", "records", "fees_usd", "revenue_usd", "supply_side_usd"]
DAILY_COLUMNS = ["date", "timestamp", "daily_fees", "daily_revenue", "daily_supply_side_revenue"]


def totals_to_frame(totals: FeeTotals, markets: Optional[MarketBook] = None) -> pd.DataFrame:
    """Per-market USD contributions, largest fees first."""
    rows = []
    for key, per in totals.per_market.items():
        underlying = None
        if markets is not None and key in markets:
            underlying = markets.lookup(key).underlying
        rows.append({
            "market": key,
            "underlying": underlying,
            "records": per.records,
            "fees_usd": per.fees_usd,
            "revenue_usd": per.revenue_usd,
            "supply_side_usd": per.fees_usd - per.revenue_usd,
        })
    if not rows:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)
    df = pd.DataFrame(rows, columns=BREAKDOWN_COLUMNS)
    return df.sort_values("fees_usd", ascending=False).reset_index(drop=True)


def results_to_frame(results: Iterable[DailyFeesResult], tz_name: str = "UTC") -> pd.DataFrame:
    """One row per window, dated by the day the window covers."""
    rows = [
        {
            # window end is the next local midnight, so step back a second for the covered day
            "date": to_date(r.timestamp - 1, tz_name),
            "timestamp": r.timestamp,
            "daily_fees": r.daily_fees,
            "daily_revenue": r.daily_revenue,
            "daily_supply_side_revenue": r.daily_supply_side_revenue,
        }
        for r in results
    ]
    if not rows:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    return pd.DataFrame(rows, columns=DAILY_COLUMNS).sort_values("timestamp").reset_index(drop=True)
