# adapters/base.py
from abc import ABC, abstractmethod
from typing import Any, List

from lending_fees.chain.client import ChainClient
from lending_fees.config.settings import FeeAdapterConfig
from lending_fees.fees.models import AccrualRecord, MarketBook


class FeeAdapter(ABC):
    """
    Base interface for fee adapters.
    Implementations are chain-agnostic; chain specifics come from the client and config.
    """
    protocol: str = ""
    version: str = ""

    def __init__(self, client: ChainClient, config: FeeAdapterConfig):
        self.client = client
        self.config = config

    @property
    def chain(self) -> str:
        return self.config.chain

    @abstractmethod
    def resolve_markets(self) -> MarketBook:
        """Enumerate tracked markets with their underlying and reserve factor."""
        ...

    @abstractmethod
    def fetch_events(self, markets: MarketBook, from_block: int, to_block: int) -> List[Any]:
        """Raw accrual logs for every market within the block window (inclusive)."""
        ...

    @abstractmethod
    def normalize(self, raw_event: Any) -> AccrualRecord:
        """Decode one raw log into an AccrualRecord."""
        ...

    def decode_all(self, raw_events: List[Any]) -> List[AccrualRecord]:
        return [self.normalize(e) for e in raw_events]
