"""
Data containers for the daily fee pipeline.

Raw on-chain amounts stay as Python ints until the aggregator converts them;
USD figures are floats.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from lending_fees.errors import MarketAlignmentError, UnknownMarketError

MANTISSA_DECIMALS = 18


def market_key(address: str) -> str:
    return address.lower()


def coin_id(chain: str, address: str) -> str:
    """Chain-qualified price identifier, e.g. 'ethereum:0xa0b8...'."""
    return f"{chain}:{address.lower()}"


@dataclass(frozen=True)
class Market:
    address: str
    underlying: Optional[str] = None
    reserve_factor: Optional[int] = None  # raw mantissa, 1e18 == 100%

    @property
    def reserve_factor_fraction(self) -> Optional[float]:
        if self.reserve_factor is None:
            return None
        return float(Decimal(int(self.reserve_factor)).scaleb(-MANTISSA_DECIMALS))


class MarketBook:
    """
    Markets keyed by address.

    Built once from the ordered market list and the two batched metadata
    sequences. Construction is the only place positions matter; everything
    downstream looks markets up by address.
    """

    def __init__(self, markets: Iterable[Market]):
        self._markets: Tuple[Market, ...] = tuple(markets)
        self._by_address: Dict[str, Market] = {}
        for m in self._markets:
            self._by_address[market_key(m.address)] = m

    @classmethod
    def from_sequences(
        cls,
        addresses: Sequence[str],
        underlyings: Sequence[Optional[str]],
        reserve_factors: Sequence[Optional[int]],
    ) -> "MarketBook":
        if len(underlyings) != len(addresses) or len(reserve_factors) != len(addresses):
            raise MarketAlignmentError(
                f"metadata misaligned: {len(addresses)} markets, "
                f"{len(underlyings)} underlyings, {len(reserve_factors)} reserve factors"
            )
        return cls(
            Market(address=a, underlying=u, reserve_factor=rf)
            for a, u, rf in zip(addresses, underlyings, reserve_factors)
        )

    def __len__(self) -> int:
        return len(self._markets)

    def __iter__(self) -> Iterator[Market]:
        return iter(self._markets)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and market_key(address) in self._by_address

    @property
    def addresses(self) -> List[str]:
        return [m.address for m in self._markets]

    def lookup(self, address: str) -> Market:
        try:
            return self._by_address[market_key(address)]
        except KeyError:
            raise UnknownMarketError(address) from None

    def price_ids(self, chain: str) -> List[str]:
        """Deduplicated, sorted price identifiers for every resolved underlying."""
        return sorted({coin_id(chain, m.underlying) for m in self._markets if m.underlying})


@dataclass(frozen=True)
class AccrualRecord:
    market: str
    cash_prior: int
    interest_accumulated: int
    borrow_index_new: int
    total_borrows_new: int
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    log_index: Optional[int] = None


@dataclass(frozen=True)
class PriceQuote:
    decimals: int
    price: float
    symbol: str = ""
    timestamp: Optional[int] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class BlockWindow:
    start_timestamp: int
    end_timestamp: int
    start_block: int
    end_block: int


@dataclass(frozen=True)
class FeeContext:
    """Joined working set for one window."""
    current_timestamp: int
    window: BlockWindow
    markets: MarketBook
    prices: Mapping[str, PriceQuote]

    @property
    def start_block(self) -> int:
        return self.window.start_block

    @property
    def end_block(self) -> int:
        return self.window.end_block


@dataclass
class MarketFees:
    fees_usd: float = 0.0
    revenue_usd: float = 0.0
    records: int = 0


@dataclass
class FeeTotals:
    daily_protocol_fees: float = 0.0
    daily_protocol_revenue: float = 0.0
    records_seen: int = 0
    skipped: Counter = field(default_factory=Counter)
    # priced records whose fees counted but whose revenue share is unknown
    revenue_unknown: Counter = field(default_factory=Counter)
    per_market: Dict[str, MarketFees] = field(default_factory=dict)

    @property
    def skipped_records(self) -> int:
        return sum(self.skipped.values())

    @property
    def daily_supply_side_revenue(self) -> float:
        return self.daily_protocol_fees - self.daily_protocol_revenue


@dataclass(frozen=True)
class DailyFeesResult:
    timestamp: int
    daily_fees: float
    daily_revenue: float
    daily_holders_revenue: float
    daily_supply_side_revenue: float

    @classmethod
    def from_totals(cls, timestamp: int, totals: FeeTotals) -> "DailyFeesResult":
        return cls(
            timestamp=timestamp,
            daily_fees=totals.daily_protocol_fees,
            daily_revenue=totals.daily_protocol_revenue,
            daily_holders_revenue=totals.daily_protocol_revenue,
            daily_supply_side_revenue=totals.daily_supply_side_revenue,
        )

    def to_dict(self) -> Dict[str, object]:
        """Harness shape: camelCase keys, monetary values as decimal strings."""
        return {
            "timestamp": self.timestamp,
            "dailyFees": repr(self.daily_fees),
            "dailyRevenue": repr(self.daily_revenue),
            "dailyHoldersRevenue": repr(self.daily_holders_revenue),
            "dailySupplySideRevenue": repr(self.daily_supply_side_revenue),
        }
