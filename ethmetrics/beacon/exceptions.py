"""Exceptions for the beacon client."""


class BeaconAPIError(Exception):
    """Error from Beacon API."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Beacon API error {status}: {message}")


class BlockNotFoundError(BeaconAPIError):
    """No block at the requested slot (skipped or orphaned)."""

    def __init__(self, message: str):
        super().__init__(404, message)


class StateNotFoundError(BeaconAPIError):
    """State not found error."""

    def __init__(self, message: str):
        super().__init__(404, message)


class MalformedResponseError(BeaconAPIError):
    """Response body is not JSON or lacks an expected field."""
