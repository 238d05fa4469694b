"""
Shared fakes for the fee pipeline tests.

FakeChainClient and FakePriceSource stand in for the RPC transport and the
DefiLlama price API so nothing here touches the network.
"""
from typing import Any, Dict, Iterable, List, Optional

import pytest

from lending_fees.chain.client import ChainClient
from lending_fees.config.settings import ACCRUE_INTEREST_TOPIC, FeeAdapterConfig
from lending_fees.fees.models import PriceQuote
from lending_fees.price_cache.llama_prices import PriceSource

MARKET_A = "0x" + "aa" * 20
MARKET_B = "0x" + "bb" * 20
MARKET_C = "0x" + "cc" * 20
TOKEN_A = "0x" + "a1" * 20
TOKEN_B = "0x" + "b1" * 20
TOKEN_C = "0x" + "c1" * 20

ONE_E18 = 10 ** 18


def encode_words(*values: int) -> str:
    return "0x" + "".join(v.to_bytes(32, "big").hex() for v in values)


def make_log(
    market: str,
    interest: int,
    cash_prior: int = 5 * ONE_E18,
    borrow_index: int = ONE_E18,
    total_borrows: int = 100 * ONE_E18,
    topic0: str = ACCRUE_INTEREST_TOPIC,
    tx_hash: str = "0x" + "ab" * 32,
    block_number: int = 18_000_000,
    log_index: int = 0,
) -> Dict[str, Any]:
    return {
        "address": market,
        "topics": [topic0],
        "data": encode_words(cash_prior, interest, borrow_index, total_borrows),
        "transactionHash": tx_hash,
        "blockNumber": block_number,
        "logIndex": log_index,
    }


class FakeChainClient(ChainClient):
    """In-memory chain: fixed markets, metadata and logs; failures on request."""

    chain = "ethereum"

    def __init__(
        self,
        markets: Iterable[str] = (),
        underlyings: Optional[Dict[str, str]] = None,
        reserve_factors: Optional[Dict[str, int]] = None,
        logs: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        blocks: Optional[Dict[int, int]] = None,
        log_failures: Iterable[str] = (),
        block_failures: Iterable[int] = (),
    ):
        self.markets = list(markets)
        self.underlyings = underlyings or {}
        self.reserve_factors = reserve_factors or {}
        self.logs = logs or {}
        self.blocks = blocks or {}
        self.log_failures = set(log_failures)
        self.block_failures = set(block_failures)
        self.log_requests: List[tuple] = []

    def resolve_block(self, timestamp: int) -> int:
        if timestamp in self.block_failures:
            raise RuntimeError(f"no block for {timestamp}")
        return self.blocks.get(timestamp, timestamp // 12)

    def call(self, target, abi, fn_name, *args):
        if fn_name == "getAllMarkets":
            return list(self.markets)
        if fn_name == "underlying":
            if target not in self.underlyings:
                raise RuntimeError("execution reverted")
            return self.underlyings[target]
        if fn_name == "reserveFactorMantissa":
            if target not in self.reserve_factors:
                raise RuntimeError("execution reverted")
            return self.reserve_factors[target]
        raise AttributeError(fn_name)

    def batch_call(self, targets, abi, fn_name, permit_failure=False):
        out = []
        for t in targets:
            try:
                out.append(self.call(t, abi, fn_name))
            except Exception:
                if not permit_failure:
                    raise
                out.append(None)
        return out

    def fetch_logs(self, target, topics, from_block, to_block):
        self.log_requests.append((target, tuple(topics), from_block, to_block))
        if target in self.log_failures:
            raise ConnectionError(f"getLogs failed for {target}")
        return list(self.logs.get(target, []))


class FakePriceSource(PriceSource):
    def __init__(self, quotes: Optional[Dict[str, PriceQuote]] = None):
        self.quotes = quotes or {}
        self.requests: List[tuple] = []

    def get_prices(self, coins, timestamp):
        coins = sorted({c.lower() for c in coins})
        self.requests.append((tuple(coins), timestamp))
        return {c: self.quotes[c] for c in coins if c in self.quotes}


@pytest.fixture
def config() -> FeeAdapterConfig:
    return FeeAdapterConfig(
        name="test_compound",
        chain="ethereum",
        comptroller="0x" + "99" * 20,
        start=1697932800,
    )


@pytest.fixture
def two_market_client() -> FakeChainClient:
    """Market A priced (18 dec, 10% reserve factor); market B's underlying has no price."""
    return FakeChainClient(
        markets=[MARKET_A, MARKET_B],
        underlyings={MARKET_A: TOKEN_A, MARKET_B: TOKEN_B},
        reserve_factors={MARKET_A: ONE_E18 // 10, MARKET_B: ONE_E18 // 5},
        logs={
            MARKET_A: [make_log(MARKET_A, interest=ONE_E18)],
            MARKET_B: [make_log(MARKET_B, interest=3 * ONE_E18, log_index=1)],
        },
    )


@pytest.fixture
def token_a_only_prices() -> FakePriceSource:
    return FakePriceSource({
        f"ethereum:{TOKEN_A}": PriceQuote(decimals=18, price=1.0, symbol="TKA", timestamp=1700000000),
    })
