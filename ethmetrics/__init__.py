"""eth-metrics - per-epoch validator pool performance from the beacon chain."""

__version__ = "0.1.0"
