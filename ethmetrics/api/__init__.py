"""HTTP query API."""

from .server import QueryAPI, is_safe_query

__all__ = ["QueryAPI", "is_safe_query"]
