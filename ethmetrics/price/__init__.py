"""Coin price ticker."""

from .ticker import PriceError, PriceTicker, coin_id_for_network

__all__ = ["PriceError", "PriceTicker", "coin_id_for_network"]
