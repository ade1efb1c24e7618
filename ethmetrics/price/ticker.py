"""Periodic coin price sampling from CoinGecko."""

import asyncio
import logging
import sqlite3
from typing import Optional

import aiohttp

from .. import metrics
from ..config import ConfigError
from ..store import Database

logger = logging.getLogger(__name__)

COINGECKO_URL = "https://api.coingecko.com/api/v3"

# Network name -> CoinGecko coin id
COIN_IDS = {
    "ethereum": "ethereum",
    "gnosis": "gnosis",
}

VS_CURRENCY = "usd"


class PriceError(Exception):
    """The price API did not return a usable price."""


def coin_id_for_network(network: str) -> str:
    """CoinGecko coin id of a network's native token.

    Raises:
        ConfigError: if the network is not supported
    """
    coin_id = COIN_IDS.get(network)
    if coin_id is None:
        raise ConfigError(f"Network not supported: {network}")
    return coin_id


class PriceTicker:
    """Fetches the coin price every interval and stores it."""

    def __init__(
        self,
        network: str,
        database: Optional[Database] = None,
        interval: float = 1800.0,
        base_url: str = COINGECKO_URL,
        timeout: float = 30.0,
    ):
        self.coin_id = coin_id_for_network(network)
        self.database = database
        self.interval = interval
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def fetch_price(self) -> float:
        """Get the current USD price of the coin.

        Raises:
            PriceError: if the response does not contain the price
            aiohttp.ClientError: on transport errors
        """
        session = await self._ensure_session()
        params = {"ids": self.coin_id, "vs_currencies": VS_CURRENCY}
        async with session.get(f"{self.base_url}/simple/price", params=params) as response:
            if response.status != 200:
                text = await response.text()
                raise PriceError(f"Price API returned {response.status}: {text}")
            data = await response.json(content_type=None)

        try:
            return float(data[self.coin_id][VS_CURRENCY])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceError(f"Unexpected price response: {data!r}") from e

    async def update(self) -> Optional[float]:
        """Fetch, record and store one price sample.

        Failures are logged and the next tick retries.
        """
        try:
            price = await self.fetch_price()
        except (PriceError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Could not fetch {self.coin_id} price: {e}")
            return None

        logger.info(f"{self.coin_id} price in USD: {price}")
        metrics.update_eth_price(price)
        if self.database is not None:
            try:
                self.database.store_eth_price(price)
            except sqlite3.Error as e:
                logger.error(f"Could not store {self.coin_id} price: {e}")
        return price

    async def run(self, stop_event: asyncio.Event) -> None:
        """Sample the price immediately and then every interval until stopped."""
        while not stop_event.is_set():
            await self.update()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
