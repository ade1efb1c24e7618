"""Pools defined by validator key files.

Two formats are supported:
- .txt: one hex public key per line, optionally quoted, 0x-prefixed or
  with a Postgres \\x prefix, as exported by a database query
- .csv: ethsta.com export, header "address,version,entity"
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..spec.constants import BLS_PUBKEY_LENGTH

logger = logging.getLogger(__name__)

# "0x" plus two hex characters per byte
KEY_STR_LENGTH = 2 + 2 * BLS_PUBKEY_LENGTH

TXT_HEADERS = ("f_validator_pubkey", "f0_", "f_public_key")
ETHSTA_HEADER = "address,version,entity"


class PoolError(Exception):
    """A pool identifier or key file cannot be used."""


@dataclass(frozen=True)
class Pool:
    identifier: str
    name: str
    pubkeys: tuple[bytes, ...]


def _decode_key(key_str: str, path: str, line_no: int) -> bytes:
    if len(key_str) != KEY_STR_LENGTH:
        raise PoolError(f"{path}:{line_no}: length of key is incorrect: {len(key_str)}")
    try:
        return bytes.fromhex(key_str[2:])
    except ValueError as e:
        raise PoolError(f"{path}:{line_no}: could not decode key: {key_str}") from e


def read_custom_validators_file(path: str) -> list[bytes]:
    """Read a .txt file with one validator public key per line.

    Raises:
        PoolError: if the file cannot be read or holds a malformed key
    """
    logger.info(f"Reading validator keys from .txt: {path}")
    keys = []
    try:
        with open(path) as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line in TXT_HEADERS:
                    continue
                key_str = line.strip('"').replace("\\x", "")
                if not key_str.startswith("0x"):
                    key_str = "0x" + key_str
                keys.append(_decode_key(key_str, path, line_no))
    except OSError as e:
        raise PoolError(f"Could not read {path}: {e}") from e

    logger.info(f"Done reading {len(keys)} keys from {path}")
    return keys


def read_ethsta_validators_file(path: str) -> list[bytes]:
    """Read an ethsta.com csv export.

    Raises:
        PoolError: if the file cannot be read or is not in ethsta.com format
    """
    logger.info(f"Reading validator keys from ethsta.com csv file: {path}")
    keys = []
    try:
        with open(path) as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line == ETHSTA_HEADER:
                    continue
                fields = line.split(",")
                if len(fields) != 3:
                    raise PoolError(
                        f"{path}:{line_no}: the format of the file is not the expected, see ethsta.com"
                    )
                keys.append(_decode_key("0x" + fields[0], path, line_no))
    except OSError as e:
        raise PoolError(f"Could not read {path}: {e}") from e

    logger.info(f"Done reading {len(keys)} keys from {path}")
    return keys


def resolve_keys(identifier: str) -> Pool:
    """Resolve a pool identifier to its display name and public keys.

    The name is the file name without directory and extension.

    Raises:
        PoolError: for an unsupported identifier or a malformed file
    """
    if identifier.endswith(".txt"):
        keys = read_custom_validators_file(identifier)
    elif identifier.endswith(".csv"):
        keys = read_ethsta_validators_file(identifier)
    else:
        raise PoolError(f"Unsupported pool identifier: {identifier} (expected a .txt or .csv file)")
    if not keys:
        raise PoolError(f"No validator keys in {identifier}")
    return Pool(identifier=identifier, name=Path(identifier).stem, pubkeys=tuple(keys))
