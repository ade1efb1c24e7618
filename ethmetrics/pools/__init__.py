"""Validator key sources for monitored pools."""

from .files import (
    PoolError,
    Pool,
    read_custom_validators_file,
    read_ethsta_validators_file,
    resolve_keys,
)

__all__ = [
    "PoolError",
    "Pool",
    "read_custom_validators_file",
    "read_ethsta_validators_file",
    "resolve_keys",
]
