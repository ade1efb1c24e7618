"""CLI entry point for eth-metrics."""

import asyncio
import logging
import sys
from typing import Optional

import click

from .config import Config, ConfigError
from .pools import PoolError
from .spec.network_config import StartupError


def setup_logging(level: str) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if level.upper() != "DEBUG":
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


@click.group()
@click.version_option(package_name="eth-metrics")
def cli():
    """eth-metrics - Validator pool performance monitor for the beacon chain."""
    pass


@cli.command()
@click.option(
    "--beacon-api-url",
    default="http://localhost:5052",
    help="Beacon API URL of the consensus client to monitor",
    envvar="ETHMETRICS_BEACON_API_URL",
)
@click.option(
    "--credentials",
    default="",
    help="user:password for HTTP Basic auth against the beacon node",
    envvar="ETHMETRICS_CREDENTIALS",
)
@click.option(
    "--pool",
    "pools",
    multiple=True,
    required=True,
    help="Validator key file (.txt or .csv) of a pool (can be specified multiple times)",
    envvar="ETHMETRICS_POOLS",
)
@click.option(
    "--database-path",
    default="./data/ethmetrics.db",
    type=click.Path(dir_okay=False),
    help="SQLite database file",
    envvar="ETHMETRICS_DATABASE_PATH",
)
@click.option(
    "--network",
    default="ethereum",
    type=click.Choice(["ethereum", "gnosis"], case_sensitive=False),
    help="Network the beacon node follows, used for the price ticker",
    envvar="ETHMETRICS_NETWORK",
)
@click.option(
    "--backfill-epochs",
    default=0,
    type=click.IntRange(min=0),
    help="Number of past epochs to check for missing metrics",
    envvar="ETHMETRICS_BACKFILL_EPOCHS",
)
@click.option(
    "--epoch-debug",
    type=click.IntRange(min=1),
    help="Compute metrics for this epoch only and exit",
    envvar="ETHMETRICS_EPOCH_DEBUG",
)
@click.option(
    "--state-timeout",
    default=60.0,
    type=float,
    help="Deadline in seconds for fetching a beacon state",
    envvar="ETHMETRICS_STATE_TIMEOUT",
)
@click.option(
    "--poll-interval",
    default=5.0,
    type=float,
    help="Seconds between epoch loop ticks",
    envvar="ETHMETRICS_POLL_INTERVAL",
)
@click.option(
    "--price-interval",
    default=1800.0,
    type=float,
    help="Seconds between price samples",
    envvar="ETHMETRICS_PRICE_INTERVAL",
)
@click.option(
    "--api-host",
    default="0.0.0.0",
    help="Host to bind the query API",
    envvar="ETHMETRICS_API_HOST",
)
@click.option(
    "--api-port",
    default=8080,
    type=int,
    help="Port for the query API",
    envvar="ETHMETRICS_API_PORT",
)
@click.option(
    "--query-timeout",
    default=10.0,
    type=float,
    help="Seconds a query API statement may run before it is interrupted",
    envvar="ETHMETRICS_QUERY_TIMEOUT",
)
@click.option(
    "--metrics-port",
    default=9090,
    type=int,
    help="Port for the Prometheus metrics endpoint",
    envvar="ETHMETRICS_METRICS_PORT",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
    envvar="ETHMETRICS_LOG_LEVEL",
)
def run(
    beacon_api_url: str,
    credentials: str,
    pools: tuple[str, ...],
    database_path: str,
    network: str,
    backfill_epochs: int,
    epoch_debug: Optional[int],
    state_timeout: float,
    poll_interval: float,
    price_interval: float,
    api_host: str,
    api_port: int,
    query_timeout: float,
    metrics_port: int,
    log_level: str,
):
    """Run the monitor."""
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    from .controller import EpochProcessingError
    from .monitor import run_monitor

    config = Config(
        beacon_api_url=beacon_api_url,
        credentials=credentials,
        pools=list(pools),
        database_path=database_path,
        network=network.lower(),
        backfill_epochs=backfill_epochs,
        epoch_debug=epoch_debug,
        state_timeout=state_timeout,
        poll_interval=poll_interval,
        price_interval=price_interval,
        api_host=api_host,
        api_port=api_port,
        query_timeout=query_timeout,
        metrics_port=metrics_port,
        log_level=log_level,
    )

    logger.info("Starting eth-metrics")
    logger.info(f"  Beacon API: {beacon_api_url}")
    logger.info(f"  Network: {config.network}")
    logger.info(f"  Pools: {config.pools}")
    logger.info(f"  Database: {database_path}")
    logger.info(f"  Backfill epochs: {backfill_epochs}")
    logger.info(f"  Query API: {api_host}:{api_port}")
    if epoch_debug is not None:
        logger.info(f"  Debug epoch: {epoch_debug}")

    try:
        asyncio.run(run_monitor(config))
    except (ConfigError, PoolError, StartupError, EpochProcessingError) as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down")
        sys.exit(0)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
