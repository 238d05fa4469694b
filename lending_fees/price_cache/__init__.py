from lending_fees.price_cache.llama_prices import LlamaPriceSource, PriceSource

__all__ = ["LlamaPriceSource", "PriceSource"]
