"""Configuration: protocol table, RPC endpoints, day windows."""
from lending_fees.config.settings import (
    ACCRUE_INTEREST_TOPIC,
    FeeAdapterConfig,
    load_protocol_config,
    load_protocols,
)

__all__ = [
    "ACCRUE_INTEREST_TOPIC",
    "FeeAdapterConfig",
    "load_protocol_config",
    "load_protocols",
]
