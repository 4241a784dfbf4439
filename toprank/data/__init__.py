"""Toprank – Price data access."""

from .prices import (
    DatabasePriceFeed,
    EodhdPriceFeed,
    PriceFeed,
    PriceFeedError,
    price_return,
)

__all__ = [
    "DatabasePriceFeed",
    "EodhdPriceFeed",
    "PriceFeed",
    "PriceFeedError",
    "price_return",
]
