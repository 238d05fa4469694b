"""
Generic Compound V2-Style Fee Adapter

Works for any protocol following the Compound V2 pattern:
- Comptroller with getAllMarkets()
- cTokens/vTokens/mTokens with:
  - underlying() (fails for native-asset markets)
  - reserveFactorMantissa()
  - AccrueInterest(cashPrior, interestAccumulated, borrowIndex, totalBorrows)
    emitted on every interest accrual

Daily fees are the USD value of interestAccumulated over the window; the
reserve factor share of it is protocol revenue.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence, Tuple

from lending_fees.adapters.base import FeeAdapter
from lending_fees.chain.client import ChainClient
from lending_fees.config.settings import FeeAdapterConfig
from lending_fees.errors import EventDecodeError, LogFetchError
from lending_fees.fees.models import AccrualRecord, MarketBook

logger = logging.getLogger(__name__)

# Minimal Comptroller ABI
COMPTROLLER_ABI = [
    {
        "inputs": [],
        "name": "getAllMarkets",
        "outputs": [{"internalType": "address[]", "name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# Minimal cToken ABI (Compound-style)
CTOKEN_ABI = [
    {
        "inputs": [],
        "name": "underlying",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "reserveFactorMantissa",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# AccrueInterest event ABI (no indexed fields, four uint256 words of data)
ACCRUE_INTEREST_EVENT = {
    "anonymous": False,
    "inputs": [
        {"indexed": False, "name": "cashPrior", "type": "uint256"},
        {"indexed": False, "name": "interestAccumulated", "type": "uint256"},
        {"indexed": False, "name": "borrowIndex", "type": "uint256"},
        {"indexed": False, "name": "totalBorrows", "type": "uint256"},
    ],
    "name": "AccrueInterest",
    "type": "event",
}

WORD = 32
ACCRUE_INTEREST_DATA_LEN = WORD * len(ACCRUE_INTEREST_EVENT["inputs"])


def _hex(value: Any) -> str:
    """Lower-case 0x-prefixed hex for str / bytes / HexBytes."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    s = str(value).lower()
    return s if s.startswith("0x") else "0x" + s


def _data_bytes(data: Any) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        hexdata = data[2:] if data.startswith("0x") else data
        try:
            return bytes.fromhex(hexdata)
        except ValueError as e:
            raise EventDecodeError(f"log data is not valid hex: {e}") from e
    raise EventDecodeError(f"unsupported log data type {type(data).__name__}")


# ----------------- market directory -----------------

def list_markets(client: ChainClient, comptroller: str) -> List[str]:
    """All market tokens, in comptroller order. Failure propagates."""
    return list(client.call(comptroller, COMPTROLLER_ABI, "getAllMarkets"))


def get_underlyings(client: ChainClient, markets: Sequence[str]) -> List[Optional[str]]:
    """underlying() per market; None where the call fails (native-asset or broken markets)."""
    return client.batch_call(markets, CTOKEN_ABI, "underlying", permit_failure=True)


def get_reserve_factors(client: ChainClient, markets: Sequence[str]) -> List[Optional[int]]:
    raw = client.batch_call(markets, CTOKEN_ABI, "reserveFactorMantissa", permit_failure=True)
    return [None if r is None else int(r) for r in raw]


def load_market_book(client: ChainClient, comptroller: str) -> MarketBook:
    markets = list_markets(client, comptroller)
    logger.info(f"[Markets] {client.chain}: {len(markets)} markets from comptroller {comptroller}")

    # same ordered list for both batches so the sequences line up with `markets`
    with ThreadPoolExecutor(max_workers=2) as executor:
        underlyings_f = executor.submit(get_underlyings, client, markets)
        reserve_factors_f = executor.submit(get_reserve_factors, client, markets)
        underlyings = underlyings_f.result()
        reserve_factors = reserve_factors_f.result()

    missing_u = sum(1 for u in underlyings if u is None)
    missing_rf = sum(1 for r in reserve_factors if r is None)
    if missing_u or missing_rf:
        logger.warning(
            f"[Markets] {client.chain}: underlying() failed for {missing_u} market(s), "
            f"reserveFactorMantissa() failed for {missing_rf}"
        )
    return MarketBook.from_sequences(markets, underlyings, reserve_factors)


# ----------------- log harvester -----------------

def harvest_logs(
    client: ChainClient,
    markets: Sequence[str],
    topic0: str,
    from_block: int,
    to_block: int,
    strict: bool = True,
    max_workers: int = 8,
) -> Tuple[List[Any], List[str]]:
    """
    AccrueInterest logs for every market in [from_block, to_block], flattened in market order.

    Returns (logs, failed_markets). With strict=True any market failure raises
    LogFetchError; otherwise the market is logged, listed and skipped.
    """
    if not markets:
        return [], []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            (market, executor.submit(client.fetch_logs, market, [topic0], from_block, to_block))
            for market in markets
        ]
        logs: List[Any] = []
        failed: List[str] = []
        for market, future in futures:
            try:
                market_logs = future.result()
            except Exception as e:
                if strict:
                    raise LogFetchError(market, e) from e
                logger.warning(f"[Logs] {client.chain}: skipping {market} after log fetch failure: {e}")
                failed.append(market)
                continue
            if market_logs:
                logger.debug(f"[Logs] {market} [{from_block:,}, {to_block:,}]: {len(market_logs)} events")
            logs.extend(market_logs)

    return logs, failed


# ----------------- event decoder -----------------

def decode_accrue_interest(log: Any, topic0: str) -> AccrualRecord:
    """
    Decode an AccrueInterest log.

    Data layout: cashPrior | interestAccumulated | borrowIndex | totalBorrows,
    each a 32-byte big-endian uint256. Any other shape is an EventDecodeError.
    """
    try:
        address = log['address']
        topics = log['topics']
        data = log['data']
    except (KeyError, TypeError) as e:
        raise EventDecodeError(f"log entry missing field: {e}") from e

    if not topics or _hex(topics[0]) != topic0.lower():
        got = _hex(topics[0]) if topics else None
        raise EventDecodeError(f"unexpected topic0 {got} for log from {address}")

    data_bytes = _data_bytes(data)
    if len(data_bytes) != ACCRUE_INTEREST_DATA_LEN:
        raise EventDecodeError(
            f"AccrueInterest data from {address} is {len(data_bytes)} bytes, "
            f"expected {ACCRUE_INTEREST_DATA_LEN}"
        )

    words = [int.from_bytes(data_bytes[i:i + WORD], 'big') for i in range(0, ACCRUE_INTEREST_DATA_LEN, WORD)]
    tx_hash = log.get('transactionHash')

    return AccrualRecord(
        market=str(address),
        cash_prior=words[0],
        interest_accumulated=words[1],
        borrow_index_new=words[2],
        total_borrows_new=words[3],
        tx_hash=_hex(tx_hash) if tx_hash is not None else None,
        block_number=log.get('blockNumber'),
        log_index=log.get('logIndex'),
    )


class CompoundV2FeeAdapter(FeeAdapter):
    """
    Fee adapter for Compound v2 forks.

    It:
      - resolves all markets via Comptroller.getAllMarkets()
      - batches underlying() / reserveFactorMantissa() per market
      - scans each market for AccrueInterest events
      - decodes events into AccrualRecords
    """

    protocol: str = "compound_v2"
    version: str = "v2"

    def __init__(self, client: ChainClient, config: FeeAdapterConfig, max_workers: int = 8):
        super().__init__(client, config)
        self.max_workers = max_workers
        self.failed_markets: List[str] = []

    def resolve_markets(self) -> MarketBook:
        return load_market_book(self.client, self.config.comptroller)

    def fetch_events(self, markets: MarketBook, from_block: int, to_block: int) -> List[Any]:
        logs, failed = harvest_logs(
            self.client,
            markets.addresses,
            self.config.accrue_interest_topic,
            from_block,
            to_block,
            strict=self.config.strict_logs,
            max_workers=self.max_workers,
        )
        self.failed_markets = failed
        logger.info(
            f"[Logs] {self.chain}: {len(logs)} AccrueInterest logs from {len(markets)} markets "
            f"in [{from_block:,}, {to_block:,}]"
        )
        return logs

    def normalize(self, raw_event: Any) -> AccrualRecord:
        return decode_accrue_interest(raw_event, self.config.accrue_interest_topic)
