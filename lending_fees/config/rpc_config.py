"""
RPC endpoint resolution for the chains Compound v2 forks are deployed on.

Order: RPC_URL_<CHAIN> env override, then Alchemy when a key is available,
then the chain's public endpoint.
"""

import os
from typing import Dict, Optional, Tuple

# chain -> (alchemy subdomain or None, public endpoint or None)
CHAIN_ENDPOINTS: Dict[str, Tuple[Optional[str], Optional[str]]] = {
    'ethereum': ('eth-mainnet', 'https://eth.llamarpc.com'),
    'arbitrum': ('arb-mainnet', 'https://arb1.arbitrum.io/rpc'),
    'optimism': ('opt-mainnet', 'https://mainnet.optimism.io'),
    'base': ('base-mainnet', 'https://mainnet.base.org'),
    'polygon': ('polygon-mainnet', 'https://polygon-rpc.com'),
    'binance': ('bnb-mainnet', 'https://bsc-dataseed.binance.org'),
    'avalanche': ('avax-mainnet', 'https://api.avax.network/ext/bc/C/rpc'),
    'cronos': (None, 'https://evm.cronos.org'),
    'flare': (None, 'https://flare-api.flare.network/ext/C/rpc'),
    'moonbeam': (None, 'https://rpc.api.moonbeam.network'),
}

ALCHEMY_URL = 'https://{subdomain}.g.alchemy.com/v2/{key}'


def alchemy_url(chain: str, key: str) -> Optional[str]:
    subdomain, _ = CHAIN_ENDPOINTS.get(chain, (None, None))
    if not subdomain:
        return None
    return ALCHEMY_URL.format(subdomain=subdomain, key=key)


def get_rpc_url(chain: str, api_key: Optional[str] = None) -> str:
    """
    Endpoint for `chain`; api_key falls back to ALCHEMY_API_KEY.

    Raises ValueError for a chain with no known endpoint.
    """
    chain = chain.lower()

    override = os.getenv(f"RPC_URL_{chain.upper()}", "").strip()
    if override:
        return override

    if chain not in CHAIN_ENDPOINTS:
        raise ValueError(f"Unknown chain: {chain}")

    key = api_key or os.getenv('ALCHEMY_API_KEY')
    url = alchemy_url(chain, key) if key else None
    if url:
        return url

    public = CHAIN_ENDPOINTS[chain][1]
    if public is None:
        raise ValueError(f"No public RPC for {chain}; set ALCHEMY_API_KEY or RPC_URL_{chain.upper()}")
    return public
