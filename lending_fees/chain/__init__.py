from lending_fees.chain.block import block_for_ts
from lending_fees.chain.client import ChainClient, Web3ChainClient, is_retryable_error

__all__ = ["block_for_ts", "ChainClient", "Web3ChainClient", "is_retryable_error"]
