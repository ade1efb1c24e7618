"""Startup and supervision of the monitor's long-running tasks."""

import asyncio
import logging
import signal
import sqlite3
from typing import Awaitable, Callable

import aiohttp

from . import __version__, metrics
from .api import QueryAPI
from .beacon import BeaconAPIError, BeaconClient
from .config import Config
from .controller import EpochController
from .pools import resolve_keys
from .price import PriceTicker, coin_id_for_network
from .spec import NetworkConfig
from .spec.network_config import StartupError
from .store import Database

logger = logging.getLogger(__name__)

RESTART_DELAY = 5.0


async def supervise(
    name: str,
    run: Callable[[asyncio.Event], Awaitable[None]],
    stop_event: asyncio.Event,
    restart_delay: float = RESTART_DELAY,
) -> None:
    """Run a task until stopped, restarting it after a fixed delay if it crashes."""
    while not stop_event.is_set():
        try:
            await run(stop_event)
        except Exception as e:
            logger.exception(f"{name} crashed: {e}, restarting in {restart_delay}s")
        else:
            if not stop_event.is_set():
                logger.warning(f"{name} returned, restarting in {restart_delay}s")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=restart_delay)
        except asyncio.TimeoutError:
            pass


async def serve_query_api(api: QueryAPI, stop_event: asyncio.Event) -> None:
    await api.start()
    try:
        await stop_event.wait()
    finally:
        await api.stop()


async def load_network_config(client: BeaconClient) -> NetworkConfig:
    """Read genesis and spec from the beacon node.

    Raises:
        StartupError: if the node cannot be reached or lacks a required parameter
    """
    try:
        genesis = await client.get_genesis()
        spec = await client.get_spec()
    except (BeaconAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise StartupError(f"Could not read network parameters from {client.base_url}: {e}") from e

    network = NetworkConfig.from_beacon_node(genesis, spec)
    logger.info(f"Genesis time: {network.genesis_time}")
    logger.info(f"Slots per epoch: {network.slots_per_epoch}")
    logger.info(f"Seconds per slot: {network.seconds_per_slot}")
    return network


async def run_monitor(config: Config) -> None:
    """Start the monitor and run it until a signal arrives.

    Raises:
        ConfigError, PoolError, StartupError: before any task is started
        EpochProcessingError: in debug mode, if the pinned epoch failed
    """
    config.validate()
    coin_id_for_network(config.network)
    for identifier in config.pools:
        pool = resolve_keys(identifier)
        logger.info(f"Pool {pool.name}: {len(pool.pubkeys)} keys from {identifier}")

    try:
        database = Database(config.database_path)
        database.create_tables()
    except sqlite3.Error as e:
        raise StartupError(f"Could not open database {config.database_path}: {e}") from e

    client = BeaconClient(config.beacon_api_url, config.credentials, timeout=config.state_timeout)
    ticker = PriceTicker(config.network, database, interval=config.price_interval)
    api = QueryAPI(database, config.api_host, config.api_port, query_timeout=config.query_timeout)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        network = await load_network_config(client)

        metrics.start_metrics_server(config.metrics_port)
        try:
            node_version = await client.get_version()
        except (BeaconAPIError, aiohttp.ClientError, asyncio.TimeoutError):
            node_version = "unknown"
        logger.info(f"Beacon node version: {node_version}")
        metrics.set_monitor_info(__version__, config.network, node_version)

        controller = EpochController(
            client,
            database,
            network,
            config.pools,
            backfill_epochs=config.backfill_epochs,
            epoch_debug=config.epoch_debug,
            state_timeout=config.state_timeout,
            poll_interval=config.poll_interval,
        )

        if config.debug_mode:
            await controller.run(stop_event)
            return

        await asyncio.gather(
            supervise("epoch loop", controller.run, stop_event),
            supervise("price ticker", ticker.run, stop_event),
            supervise("query api", lambda event: serve_query_api(api, event), stop_event),
        )
        logger.info("Stopping eth-metrics")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await ticker.close()
        await client.close()
        database.close()
