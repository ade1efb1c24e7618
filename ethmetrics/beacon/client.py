"""Beacon API client for reading state, duties and headers from a beacon node."""

import base64
import logging
from typing import Callable, Optional, TypeVar

import aiohttp

from .exceptions import (
    BeaconAPIError,
    BlockNotFoundError,
    MalformedResponseError,
    StateNotFoundError,
)
from .types import BlockHeader, ProposerDuty, SyncStatus
from ..spec.accessors import VersionedBeaconState
from .. import metrics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

T = TypeVar("T")


class BeaconClient:
    """Client for a standard Beacon API (any conformant consensus client)."""

    def __init__(self, base_url: str, credentials: str = "", timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers: dict[str, str] = {}
        if credentials:
            encoded = base64.b64encode(credentials.encode()).decode()
            self._headers["Authorization"] = f"Basic {encoded}"
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def _get_json(
        self,
        path: str,
        endpoint: str,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ) -> Optional[dict]:
        """GET a JSON object, mapping 404 to None.

        Raises:
            BeaconAPIError: on a non-200 status
            MalformedResponseError: if the body is not a JSON object
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        metrics.record_beacon_api_request(endpoint)

        kwargs = {"headers": {"Accept": "application/json"}}
        if timeout is not None:
            kwargs["timeout"] = timeout

        async with session.get(url, **kwargs) as response:
            if response.status == 404:
                return None
            if response.status != 200:
                text = await response.text()
                metrics.record_beacon_api_error(endpoint)
                raise BeaconAPIError(response.status, text)
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                metrics.record_beacon_api_error(endpoint)
                raise MalformedResponseError(response.status, f"{endpoint}: invalid JSON: {e}") from e

        if not isinstance(data, dict):
            metrics.record_beacon_api_error(endpoint)
            raise MalformedResponseError(200, f"{endpoint}: expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _decode(endpoint: str, parse: Callable[[], T]) -> T:
        """Run parse, turning a missing or mistyped field into MalformedResponseError."""
        try:
            return parse()
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            metrics.record_beacon_api_error(endpoint)
            raise MalformedResponseError(200, f"{endpoint}: unexpected response: {e!r}") from e

    async def get_syncing(self) -> SyncStatus:
        """Get head slot and sync status of the node."""
        data = await self._get_json("/eth/v1/node/syncing", "syncing")
        if data is None:
            raise BeaconAPIError(404, "syncing endpoint not found")
        return self._decode("syncing", lambda: SyncStatus.from_json(data["data"]))

    async def get_genesis(self) -> dict:
        """Get genesis information."""
        data = await self._get_json("/eth/v1/beacon/genesis", "genesis")
        if data is None:
            raise BeaconAPIError(404, "genesis not found")
        return self._decode("genesis", lambda: dict(data.get("data", {})))

    async def get_spec(self) -> dict:
        """Get the chain spec/config."""
        data = await self._get_json("/eth/v1/config/spec", "spec")
        if data is None:
            raise BeaconAPIError(404, "spec not found")
        return self._decode("spec", lambda: dict(data.get("data", {})))

    async def get_version(self) -> str:
        """Get the beacon node version string."""
        data = await self._get_json("/eth/v1/node/version", "version")
        if data is None:
            return "unknown"
        return self._decode("version", lambda: str(data.get("data", {}).get("version", "unknown")))

    async def get_state(
        self,
        state_id: str,
        timeout: Optional[float] = None,
        fallback_version: str = "",
    ) -> VersionedBeaconState:
        """Fetch and decode a beacon state.

        Args:
            state_id: Slot number, "head", "finalized" or a state root
            timeout: Total deadline for the request in seconds
            fallback_version: Revision to decode as when the response has no version

        Raises:
            StateNotFoundError: if the node has no state for state_id
            MalformedResponseError: if the body has no state object
            StateAccessError: if the state revision is unknown or malformed
        """
        client_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        data = await self._get_json(
            f"/eth/v2/debug/beacon/states/{state_id}",
            "state",
            timeout=client_timeout,
        )
        if data is None:
            raise StateNotFoundError(f"State not found: {state_id}")

        version = data.get("version") or fallback_version
        body = data.get("data")
        if not isinstance(body, dict):
            metrics.record_beacon_api_error("state")
            raise MalformedResponseError(200, f"state: no state object in response for {state_id}")
        state = VersionedBeaconState.from_json(version, body)
        logger.debug(f"Decoded state {state_id} as {version} format")
        return state

    async def get_proposer_duties(self, epoch: int) -> list[ProposerDuty]:
        """Get the proposer of every slot in the epoch, for all validators."""
        data = await self._get_json(
            f"/eth/v1/validator/duties/proposer/{epoch}",
            "proposer_duties",
        )
        if data is None:
            raise BeaconAPIError(404, f"Proposer duties not found for epoch {epoch}")
        return self._decode(
            "proposer_duties",
            lambda: [ProposerDuty.from_json(d) for d in data.get("data", [])],
        )

    async def get_header(self, block_id: str) -> BlockHeader:
        """Get block header.

        Raises:
            BlockNotFoundError: if there is no block at block_id
            MalformedResponseError: if the body is not a block header
        """
        data = await self._get_json(f"/eth/v1/beacon/headers/{block_id}", "headers")
        if data is None:
            raise BlockNotFoundError(f"Block header not found: {block_id}")
        return self._decode("headers", lambda: BlockHeader.from_json(data["data"]))

    async def close(self) -> None:
        """Close the client and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
