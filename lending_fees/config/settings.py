"""
Protocol configuration loaded from protocols.yaml.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from eth_utils import encode_hex, keccak

from lending_fees.config.time import DAY_SECONDS

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "protocols.yaml"

ACCRUE_INTEREST_SIG = "AccrueInterest(uint256,uint256,uint256,uint256)"
ACCRUE_INTEREST_TOPIC = encode_hex(keccak(text=ACCRUE_INTEREST_SIG))

REQUIRED_FIELDS = ("chain", "comptroller")


@dataclass(frozen=True)
class FeeAdapterConfig:
    name: str
    chain: str
    comptroller: str
    price_chain: str = ""
    start: int = 0
    window_seconds: int = DAY_SECONDS
    accrue_interest_topic: str = ACCRUE_INTEREST_TOPIC
    strict_logs: bool = True
    methodology: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.window_seconds <= 0:
            raise ValueError(f"{self.name}: window_seconds must be positive")
        if not self.price_chain:
            object.__setattr__(self, "price_chain", self.chain)
        object.__setattr__(self, "accrue_interest_topic", self.accrue_interest_topic.lower())

    @classmethod
    def from_dict(cls, name: str, raw: Dict[str, Any]) -> "FeeAdapterConfig":
        missing = [f for f in REQUIRED_FIELDS if not raw.get(f)]
        if missing:
            raise ValueError(f"{name}: missing required config fields {missing}")
        return cls(
            name=name,
            chain=str(raw["chain"]).lower(),
            comptroller=str(raw["comptroller"]),
            price_chain=str(raw.get("price_chain") or "").lower(),
            start=int(raw.get("start", 0)),
            window_seconds=int(raw.get("window_seconds", DAY_SECONDS)),
            accrue_interest_topic=str(raw.get("accrue_interest_topic") or ACCRUE_INTEREST_TOPIC),
            strict_logs=bool(raw.get("strict_logs", True)),
            methodology=dict(raw.get("methodology") or {}),
        )


def load_protocols(path: Optional[Union[str, Path]] = None) -> Dict[str, Dict[str, Any]]:
    """Load the raw protocol table from YAML."""
    config_file = Path(path) if path else DEFAULT_CONFIG_PATH
    with open(config_file) as f:
        config = yaml.safe_load(f) or {}
    return config.get("protocols", config)


def load_protocol_config(name: str, path: Optional[Union[str, Path]] = None) -> FeeAdapterConfig:
    protocols = load_protocols(path)
    if name not in protocols:
        raise KeyError(f"Unknown protocol '{name}'. Known: {sorted(protocols)}")
    return FeeAdapterConfig.from_dict(name, protocols[name])
