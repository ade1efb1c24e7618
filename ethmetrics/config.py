"""Configuration for the eth-metrics monitor."""

from dataclasses import dataclass, field
from typing import Optional

SUPPORTED_NETWORKS = ("ethereum", "gnosis")


class ConfigError(Exception):
    """The monitor cannot start with the given configuration."""


@dataclass
class Config:
    """Monitor configuration."""

    beacon_api_url: str = "http://localhost:5052"
    credentials: str = ""
    pools: list[str] = field(default_factory=list)
    database_path: str = "./data/ethmetrics.db"
    network: str = "ethereum"
    backfill_epochs: int = 0
    epoch_debug: Optional[int] = None
    state_timeout: float = 60.0
    poll_interval: float = 5.0
    price_interval: float = 1800.0
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    query_timeout: float = 10.0
    metrics_port: int = 9090
    log_level: str = "INFO"

    @property
    def debug_mode(self) -> bool:
        """One-shot run computing a single pinned epoch."""
        return self.epoch_debug is not None

    def validate(self) -> None:
        """Check values that cannot be checked by the option parser.

        Raises:
            ConfigError: on the first invalid value
        """
        if not self.beacon_api_url:
            raise ConfigError("A beacon API URL is required")
        if not self.pools:
            raise ConfigError("At least one pool must be configured")
        if self.network not in SUPPORTED_NETWORKS:
            raise ConfigError(
                f"Network not supported: {self.network} (expected one of {', '.join(SUPPORTED_NETWORKS)})"
            )
        if self.backfill_epochs < 0:
            raise ConfigError(f"backfill_epochs must not be negative: {self.backfill_epochs}")
        if self.epoch_debug is not None and self.epoch_debug < 1:
            raise ConfigError(f"epoch_debug must be at least 1: {self.epoch_debug}")
        for name in ("state_timeout", "poll_interval", "price_interval", "query_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive: {getattr(self, name)}")
