"""Prometheus metrics for eth-metrics."""

import logging
import threading

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 9090

# Monitor info
monitor_info = Info(
    "ethmetrics_monitor",
    "Monitor information",
)

# Chain progress
head_slot = Gauge(
    "ethmetrics_head_slot",
    "Head slot reported by the beacon node",
)

target_epoch = Gauge(
    "ethmetrics_target_epoch",
    "Epoch the controller is trying to reach",
)

last_processed_epoch = Gauge(
    "ethmetrics_last_processed_epoch",
    "Last target epoch processed successfully",
)

# Epoch processing
epochs_processed = Counter(
    "ethmetrics_epochs_processed_total",
    "Epochs processed, by outcome",
    ["status"],
)

epoch_processing_time = Histogram(
    "ethmetrics_epoch_processing_seconds",
    "Time to fetch, compute and store one epoch",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

# Per-pool metrics
pool_active_validators = Gauge(
    "ethmetrics_pool_active_validators",
    "Active validators in the pool at the last processed epoch",
    ["pool"],
)

pool_missed_attestations = Gauge(
    "ethmetrics_pool_missed_attestations",
    "Validators of the pool that missed the source vote",
    ["pool"],
)

pool_proposals = Gauge(
    "ethmetrics_pool_proposals",
    "Block proposals of the pool at the last processed epoch",
    ["pool", "status"],
)

# Beacon API metrics
beacon_api_requests = Counter(
    "ethmetrics_beacon_api_requests_total",
    "Total Beacon API requests",
    ["endpoint"],
)

beacon_api_errors = Counter(
    "ethmetrics_beacon_api_errors_total",
    "Total Beacon API requests answered with an error status",
    ["endpoint"],
)

# Query API metrics
query_api_requests = Counter(
    "ethmetrics_query_api_requests_total",
    "Total query API requests",
    ["status"],
)

# Price
eth_price_usd = Gauge(
    "ethmetrics_eth_price_usd",
    "Last fetched coin price in USD",
)


_server_started = False
_server_lock = threading.Lock()


def start_metrics_server(port: int = DEFAULT_METRICS_PORT) -> bool:
    """Start the Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 9090)

    Returns:
        True if server started successfully, False if already running
    """
    global _server_started

    with _server_lock:
        if _server_started:
            logger.warning("Metrics server already running")
            return False

        try:
            start_http_server(port)
            _server_started = True
            logger.info(f"Prometheus metrics server started on port {port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False


def set_monitor_info(version: str, network: str, beacon_node: str) -> None:
    """Set monitor information metric."""
    monitor_info.info({
        "version": version,
        "network": network,
        "beacon_node": beacon_node,
    })


def update_head(slot: int) -> None:
    head_slot.set(slot)


def update_target_epoch(epoch: int) -> None:
    target_epoch.set(epoch)


def update_last_processed_epoch(epoch: int) -> None:
    last_processed_epoch.set(epoch)


def record_epoch_processed(status: str, duration: float) -> None:
    """Record one epoch processing attempt.

    Args:
        status: 'success' or 'failure'
        duration: Wall time spent on the epoch in seconds
    """
    epochs_processed.labels(status=status).inc()
    epoch_processing_time.observe(duration)


def update_pool_performance(pool: str, active: int, missed_attestations: int) -> None:
    """Update per-pool attestation gauges."""
    pool_active_validators.labels(pool=pool).set(active)
    pool_missed_attestations.labels(pool=pool).set(missed_attestations)


def update_pool_proposals(pool: str, scheduled: int, proposed: int, missed: int) -> None:
    """Update per-pool proposal gauges."""
    pool_proposals.labels(pool=pool, status="scheduled").set(scheduled)
    pool_proposals.labels(pool=pool, status="proposed").set(proposed)
    pool_proposals.labels(pool=pool, status="missed").set(missed)


def record_beacon_api_request(endpoint: str) -> None:
    """Record a Beacon API request."""
    beacon_api_requests.labels(endpoint=endpoint).inc()


def record_beacon_api_error(endpoint: str) -> None:
    """Record a Beacon API request that failed with a non-404 status."""
    beacon_api_errors.labels(endpoint=endpoint).inc()


def record_query_request(status: int) -> None:
    """Record a query API request by HTTP status."""
    query_api_requests.labels(status=str(status)).inc()


def update_eth_price(price: float) -> None:
    eth_price_usd.set(price)
