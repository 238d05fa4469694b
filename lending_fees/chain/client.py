"""
Chain access used by the fee pipeline.

ChainClient is the transport contract: block-by-timestamp, single and batched
contract calls, log fetches. Web3ChainClient implements it over web3.py with
pacing, retries on transient RPC errors and thread-pool fan-out for batches.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from web3 import Web3

from lending_fees.chain.block import block_for_ts
from lending_fees.config.rpc_pool import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_PATTERNS = [
    '429',
    'too many requests',
    'rate limit',
    'compute units',
    'connection aborted',
    'remotedisconnected',
    'remote end closed',
    '503',
    '502',
    'service unavailable',
    'timeout',
    'timed out',
]


def is_retryable_error(error_str: str) -> bool:
    """True for rate limits, gateway errors and dropped connections."""
    error_lower = error_str.lower()
    return any(pattern in error_lower for pattern in RETRYABLE_PATTERNS)


class ChainClient(ABC):
    """Transport contract consumed by the adapters and the window resolver."""

    chain: str = ""

    @abstractmethod
    def resolve_block(self, timestamp: int) -> int:
        ...

    @abstractmethod
    def call(self, target: str, abi: List[Dict[str, Any]], fn_name: str, *args: Any) -> Any:
        ...

    @abstractmethod
    def batch_call(
        self,
        targets: Sequence[str],
        abi: List[Dict[str, Any]],
        fn_name: str,
        permit_failure: bool = False,
    ) -> List[Any]:
        """Results in target order; failed entries are None when permit_failure is set."""
        ...

    @abstractmethod
    def fetch_logs(self, target: str, topics: List[str], from_block: int, to_block: int) -> List[Any]:
        ...


class Web3ChainClient(ChainClient):
    def __init__(
        self,
        web3: Web3,
        chain: str,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        max_workers: int = 8,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        log_chunk_size: Optional[int] = None,
    ):
        if log_chunk_size is not None and log_chunk_size <= 0:
            raise ValueError("log_chunk_size must be positive")
        self.web3 = web3
        self.chain = chain
        self.rate_limiter = rate_limiter
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.log_chunk_size = log_chunk_size
        self._block_ts_cache: Dict[int, int] = {}
        self._cache_lock = threading.Lock()

    def _with_retries(self, func: Callable[[], T], what: str) -> T:
        attempt = 0
        while True:
            if self.rate_limiter is not None:
                self.rate_limiter.wait()
            try:
                return func()
            except Exception as e:
                if attempt < self.max_retries and is_retryable_error(str(e)):
                    wait_time = self.backoff_seconds * (2 ** attempt)
                    logger.warning(f"[RPC] {self.chain} {what}: {e}; retrying in {wait_time:.1f}s")
                    time.sleep(wait_time)
                    attempt += 1
                    continue
                raise

    def _block_timestamp(self, block_number: int) -> int:
        with self._cache_lock:
            cached = self._block_ts_cache.get(block_number)
        if cached is not None:
            return cached
        ts = self._with_retries(
            lambda: self.web3.eth.get_block(block_number)["timestamp"],
            f"get_block({block_number})",
        )
        with self._cache_lock:
            self._block_ts_cache[block_number] = int(ts)
        return int(ts)

    def resolve_block(self, timestamp: int) -> int:
        block = block_for_ts(self.web3, timestamp, get_timestamp=self._block_timestamp)
        logger.debug(f"[RPC] {self.chain}: ts {timestamp} -> block {block:,}")
        return block

    def call(self, target: str, abi: List[Dict[str, Any]], fn_name: str, *args: Any) -> Any:
        contract = self.web3.eth.contract(address=Web3.to_checksum_address(target), abi=abi)
        fn = getattr(contract.functions, fn_name)
        return self._with_retries(lambda: fn(*args).call(), f"{fn_name}@{target}")

    def batch_call(
        self,
        targets: Sequence[str],
        abi: List[Dict[str, Any]],
        fn_name: str,
        permit_failure: bool = False,
    ) -> List[Any]:
        def one(target: str) -> Any:
            if not permit_failure:
                return self.call(target, abi, fn_name)
            try:
                return self.call(target, abi, fn_name)
            except Exception as e:
                logger.debug(f"[RPC] {fn_name}@{target} failed, recording None: {e}")
                return None

        if not targets:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(one, targets))

    def fetch_logs(self, target: str, topics: List[str], from_block: int, to_block: int) -> List[Any]:
        address = Web3.to_checksum_address(target)
        chunk = self.log_chunk_size or (to_block - from_block + 1)
        logs: List[Any] = []
        current = from_block
        while current <= to_block:
            chunk_end = min(current + chunk - 1, to_block)
            params = {
                'fromBlock': current,
                'toBlock': chunk_end,
                'address': address,
                'topics': topics,
            }
            logs.extend(self._with_retries(
                lambda: self.web3.eth.get_logs(params),
                f"get_logs {address} [{current:,}, {chunk_end:,}]",
            ))
            current = chunk_end + 1
        return logs
