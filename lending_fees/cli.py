"""
Daily Fee Collector

Computes daily fees / revenue for a Compound v2-style protocol from
AccrueInterest events.

Usage:
    lending-fees --protocol morpho_compound --date 2024-01-15
    lending-fees --protocol morpho_compound --timestamp 1705363200 --breakdown
    lending-fees --protocol morpho_compound --start-date 2024-01-01 --end-date 2024-01-07
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import pandas as pd

from lending_fees.config.settings import load_protocol_config
from lending_fees.config.time import date_to_utc_window, iterate_dates
from lending_fees.errors import FeeComputationError
from lending_fees.fees.report import results_to_frame, totals_to_frame
from lending_fees.fees.runner import build_adapter, run_fee_window
from lending_fees.price_cache.llama_prices import LlamaPriceSource

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Daily fees from AccrueInterest events")
    parser.add_argument("--protocol", default="morpho_compound", help="Protocol key in protocols.yaml")
    parser.add_argument("--config", default=None, help="Alternate protocols.yaml")

    when = parser.add_mutually_exclusive_group(required=True)
    when.add_argument("--timestamp", type=int, help="Window end (unix seconds)")
    when.add_argument("--date", help="Day to compute (YYYY-MM-DD); window ends at next local midnight")
    when.add_argument("--start-date", help="First day of a range (YYYY-MM-DD), needs --end-date")

    parser.add_argument("--end-date", help="Last day of a range (inclusive)")
    parser.add_argument("--tz", default="UTC", help="Zone for --date / range day boundaries")
    parser.add_argument("--rpc-url", default=None, help="RPC endpoint (default: from env / public RPC)")
    parser.add_argument("--workers", type=int, default=8, help="Parallel RPC calls")
    parser.add_argument("--log-chunk-size", type=int, default=None, help="Max blocks per eth_getLogs call")
    parser.add_argument("--breakdown", action="store_true", help="Print per-market table")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def window_ends(args: argparse.Namespace) -> List[int]:
    if args.end_date and not args.start_date:
        raise ValueError("--end-date only applies with --start-date")
    if args.timestamp is not None:
        return [args.timestamp]
    if args.date:
        return [date_to_utc_window(args.date, args.tz)[1]]
    if not args.end_date:
        raise ValueError("--start-date requires --end-date")
    return [date_to_utc_window(d, args.tz)[1] for d in iterate_dates(args.start_date, args.end_date)]


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        timestamps = window_ends(args)
    except ValueError as e:
        parser.error(str(e))
    if args.log_chunk_size is not None and args.log_chunk_size <= 0:
        parser.error("--log-chunk-size must be positive")

    config = load_protocol_config(args.protocol, args.config)
    adapter = build_adapter(
        config,
        rpc_url=args.rpc_url,
        max_workers=args.workers,
        log_chunk_size=args.log_chunk_size,
    )
    prices = LlamaPriceSource()

    results = []
    for ts in timestamps:
        try:
            run = run_fee_window(ts, adapter, prices)
        except FeeComputationError as e:
            logger.error(f"[Fees] {config.name} @ {ts}: {e}")
            return 1

        results.append(run.result)
        if len(timestamps) == 1:
            print(json.dumps(run.result.to_dict(), indent=2))
        if run.totals.skipped_records:
            print(f"skipped records: {dict(run.totals.skipped)}", file=sys.stderr)
        if run.totals.revenue_unknown:
            print(f"revenue unknown: {dict(run.totals.revenue_unknown)}", file=sys.stderr)
        if args.breakdown:
            with pd.option_context("display.max_rows", None, "display.width", 160):
                print(totals_to_frame(run.totals, run.context.markets).to_string(index=False))

    if len(timestamps) > 1:
        with pd.option_context("display.max_rows", None, "display.width", 160):
            print(results_to_frame(results, args.tz).to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
