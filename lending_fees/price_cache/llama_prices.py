# llama_prices.py
# Historical token prices from the DefiLlama coins API, keyed by
# "<chain>:<address>" identifiers, with pacing and retry on 429/5xx.

from __future__ import annotations

import logging
import os
import random
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import requests

from lending_fees.fees.models import PriceQuote

logger = logging.getLogger(__name__)

LLAMA_COINS_URL = os.getenv("LLAMA_COINS_URL", "https://coins.llama.fi").rstrip("/")

DEFAULT_BATCH_SIZE = 80
DEFAULT_SEARCH_WIDTH = "6h"
DEFAULT_MIN_INTERVAL = 0.2


class PriceSource(ABC):
    """Price lookup contract: identifiers without a price are simply absent."""

    @abstractmethod
    def get_prices(self, coins: Iterable[str], timestamp: int) -> Dict[str, PriceQuote]:
        ...


def normalize_coins(coins: Iterable[str]) -> List[str]:
    """Lower-cased, deduplicated, sorted identifiers."""
    return sorted({c.strip().lower() for c in coins if c and c.strip()})


def parse_coin_entry(entry: dict) -> Optional[PriceQuote]:
    price = entry.get("price")
    if not isinstance(price, (int, float)) or isinstance(price, bool):
        return None
    decimals = entry.get("decimals")
    if decimals is None:
        return None
    return PriceQuote(
        decimals=int(decimals),
        price=float(price),
        symbol=str(entry.get("symbol") or ""),
        timestamp=int(entry["timestamp"]) if entry.get("timestamp") is not None else None,
        confidence=float(entry["confidence"]) if entry.get("confidence") is not None else None,
    )


class LlamaPriceSource(PriceSource):
    def __init__(
        self,
        base_url: str = LLAMA_COINS_URL,
        session: Optional[requests.Session] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        search_width: str = DEFAULT_SEARCH_WIDTH,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_tries: int = 5,
        timeout: float = 45,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.batch_size = batch_size
        self.search_width = search_width
        self.min_interval = min_interval
        self.max_tries = max_tries
        self.timeout = timeout
        self._last_call = 0.0

    def _rate_limit(self) -> None:
        delay = max(0.0, self.min_interval - (time.time() - self._last_call))
        if delay > 0:
            time.sleep(delay)
        self._last_call = time.time()

    def _get_json(self, url: str, params: Optional[dict] = None) -> dict:
        for attempt in range(self.max_tries):
            self._rate_limit()
            try:
                r = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                sleep_s = min(60, 2 ** attempt + random.random())
                logger.warning(f"[Prices] GET {url} attempt {attempt + 1} failed ({e}); sleeping {sleep_s:.1f}s")
                time.sleep(sleep_s)
                continue

            if r.status_code == 429 or 500 <= r.status_code < 600:
                sleep_s = min(60, 2 ** attempt + random.random())
                logger.warning(f"[Prices] {r.status_code} on {url}; sleeping {sleep_s:.1f}s and retrying")
                time.sleep(sleep_s)
                continue

            r.raise_for_status()
            return r.json()

        raise requests.HTTPError(f"GET failed after {self.max_tries} tries: {url}")

    def get_prices(self, coins: Iterable[str], timestamp: int) -> Dict[str, PriceQuote]:
        wanted = normalize_coins(coins)
        prices: Dict[str, PriceQuote] = {}
        for i in range(0, len(wanted), self.batch_size):
            batch = wanted[i:i + self.batch_size]
            url = f"{self.base_url}/prices/historical/{int(timestamp)}/{','.join(batch)}"
            data = self._get_json(url, params={"searchWidth": self.search_width})
            for key, entry in (data.get("coins") or {}).items():
                quote = parse_coin_entry(entry or {})
                if quote is not None:
                    prices[key.lower()] = quote

        missing = [c for c in wanted if c not in prices]
        logger.info(f"[Prices] {len(prices)}/{len(wanted)} coins priced at {timestamp}")
        if missing:
            logger.debug(f"[Prices] no price for: {', '.join(missing)}")
        return prices
