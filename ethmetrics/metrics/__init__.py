"""Prometheus metrics."""

from .metrics import (
    DEFAULT_METRICS_PORT,
    start_metrics_server,
    set_monitor_info,
    update_head,
    update_target_epoch,
    update_last_processed_epoch,
    record_epoch_processed,
    update_pool_performance,
    update_pool_proposals,
    record_beacon_api_request,
    record_beacon_api_error,
    record_query_request,
    update_eth_price,
)

__all__ = [
    "DEFAULT_METRICS_PORT",
    "start_metrics_server",
    "set_monitor_info",
    "update_head",
    "update_target_epoch",
    "update_last_processed_epoch",
    "record_epoch_processed",
    "update_pool_performance",
    "update_pool_proposals",
    "record_beacon_api_request",
    "record_beacon_api_error",
    "record_query_request",
    "update_eth_price",
]
