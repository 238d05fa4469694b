"""
Web3 connection cache with per-endpoint rate limiting.

One Web3 instance per (chain, url). Chains with non-standard extraData get
the POA middleware injected.

Usage:
    from lending_fees.config.rpc_pool import get_web3_with_limiter

    w3, limiter = get_web3_with_limiter('ethereum')
    limiter.wait()
    block = w3.eth.block_number
"""

import logging
import threading
import time
from typing import Dict, Optional, Tuple

from web3 import Web3

from lending_fees.config.rpc_config import get_rpc_url

try:
    from web3.middleware import ExtraDataToPOAMiddleware as geth_poa_middleware
except ImportError:
    from web3.middleware import geth_poa_middleware

logger = logging.getLogger(__name__)

# Chains that use POA (Proof of Authority) or have non-standard extraData
POA_CHAINS = ['binance', 'polygon', 'avalanche', 'optimism', 'cronos', 'flare']

REQUEST_TIMEOUT = 60
DEFAULT_CALLS_PER_SECOND = 10


class RateLimiter:
    """
    Minimum-interval pacing shared by every thread using one endpoint.

    Alchemy free tier is 300 CUs/second; ~10 calls/second leaves headroom
    whatever the call mix (eth_call 26 CUs, eth_getLogs 75 CUs).
    """

    def __init__(self, calls_per_second: float = DEFAULT_CALLS_PER_SECOND):
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")
        self.calls_per_second = calls_per_second
        self.min_interval = 1.0 / calls_per_second
        self.last_call = 0.0
        self.lock = threading.Lock()

    def wait(self):
        """Sleep just long enough to respect the interval."""
        with self.lock:
            now = time.time()
            time_since_last = now - self.last_call
            if time_since_last < self.min_interval:
                time.sleep(self.min_interval - time_since_last)
            self.last_call = time.time()


_POOL_CACHE: Dict[Tuple[str, str], Tuple[Web3, RateLimiter]] = {}
_POOL_LOCK = threading.Lock()


def _build(chain: str, url: str, calls_per_second: float) -> Tuple[Web3, RateLimiter]:
    w3 = Web3(Web3.HTTPProvider(url, request_kwargs={'timeout': REQUEST_TIMEOUT}))
    if chain in POA_CHAINS:
        w3.middleware_onion.inject(geth_poa_middleware, layer=0)
    logger.info(f"[RPC Pool] {chain}: connection to {url.split('/v2/')[0]}")
    return w3, RateLimiter(calls_per_second=calls_per_second)


def get_web3_with_limiter(
    chain: str,
    rpc_url: Optional[str] = None,
    calls_per_second: float = DEFAULT_CALLS_PER_SECOND,
    force_new: bool = False,
) -> Tuple[Web3, RateLimiter]:
    """
    Get (Web3, RateLimiter) for a chain, cached per (chain, url).

    Args:
        chain: Chain name (e.g., 'ethereum', 'arbitrum')
        rpc_url: Explicit endpoint; resolved with get_rpc_url() when omitted
        calls_per_second: Pacing for a newly built connection
        force_new: Rebuild even if cached
    """
    chain = chain.lower()
    url = rpc_url or get_rpc_url(chain)
    key = (chain, url)
    with _POOL_LOCK:
        if key not in _POOL_CACHE or force_new:
            _POOL_CACHE[key] = _build(chain, url, calls_per_second)
        return _POOL_CACHE[key]

