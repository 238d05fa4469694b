from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from lending_fees.chain.client import ChainClient
from lending_fees.config.time import DAY_SECONDS
from lending_fees.errors import WindowResolutionError
from lending_fees.fees.models import BlockWindow

logger = logging.getLogger(__name__)


def resolve_window(client: ChainClient, timestamp: int, window_seconds: int = DAY_SECONDS) -> BlockWindow:
    """
    Block range for the window (timestamp - window_seconds, timestamp].

    Both ends are resolved concurrently. A failed lookup or an inverted range
    raises WindowResolutionError.
    """
    end_ts = int(timestamp)
    start_ts = end_ts - window_seconds

    with ThreadPoolExecutor(max_workers=2) as executor:
        start_f = executor.submit(client.resolve_block, start_ts)
        end_f = executor.submit(client.resolve_block, end_ts)
        try:
            start_block = int(start_f.result())
            end_block = int(end_f.result())
        except Exception as e:
            raise WindowResolutionError(
                f"could not resolve blocks for window [{start_ts}, {end_ts}] on {client.chain}: {e}"
            ) from e

    if start_block > end_block:
        raise WindowResolutionError(
            f"start block {start_block} is after end block {end_block} "
            f"for window [{start_ts}, {end_ts}]"
        )

    logger.info(f"[Window] {client.chain}: [{start_ts}, {end_ts}] -> blocks [{start_block:,}, {end_block:,}]")
    return BlockWindow(
        start_timestamp=start_ts,
        end_timestamp=end_ts,
        start_block=start_block,
        end_block=end_block,
    )
