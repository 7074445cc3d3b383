"""Market data clients.

Modules in this package expose async request/response clients that the
runtime uses to resolve watched markets and read their current prices.
"""

from .polymarket import (  # noqa: F401
    MarketDataError,
    MarketNotFoundError,
    PolymarketClient,
    decode_string_list,
    mid_price_from_book,
)

__all__ = [
    "MarketDataError",
    "MarketNotFoundError",
    "PolymarketClient",
    "decode_string_list",
    "mid_price_from_book",
]
