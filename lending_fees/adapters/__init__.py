from lending_fees.adapters.base import FeeAdapter
from lending_fees.adapters.compound_v2_style import CompoundV2FeeAdapter

__all__ = ["FeeAdapter", "CompoundV2FeeAdapter"]
