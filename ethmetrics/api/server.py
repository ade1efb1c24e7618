"""Read-only SQL query API over the stored metrics."""

import asyncio
import logging
import re
import sqlite3
from typing import Optional

from aiohttp import web

from .. import metrics
from ..store import Database

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 10.0

UNSAFE_KEYWORDS = ("drop", "delete", "update", "insert", "alter", "create", "replace")

_WHITESPACE = re.compile(r"\s+")


def is_safe_query(query: str) -> bool:
    """Reject any statement containing a data-modifying keyword.

    The match is a case-insensitive substring test, so identifiers that
    merely contain a keyword are rejected too.
    """
    normalized = _WHITESPACE.sub(" ", query.lower())
    return not any(keyword in normalized for keyword in UNSAFE_KEYWORDS)


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


class QueryAPI:
    """HTTP server answering POST /query with rows from the database."""

    def __init__(
        self,
        database: Database,
        host: str = "0.0.0.0",
        port: int = 8080,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
    ):
        self.database = database
        self.host = host
        self.port = port
        self.query_timeout = query_timeout
        self.app = web.Application(middlewares=[cors_middleware])
        self.runner: Optional[web.AppRunner] = None
        self._setup_routes()

    def _setup_routes(self):
        """Set up API routes."""
        self.app.router.add_post("/query", self.post_query)
        self.app.router.add_get("/health", self.get_health)

    async def start(self):
        """Start the API server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"Query API listening on {self.host}:{self.port}")

    async def stop(self):
        """Stop the API server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    async def get_health(self, request: web.Request) -> web.Response:
        """GET /health"""
        return web.json_response({"status": "ok"})

    async def post_query(self, request: web.Request) -> web.Response:
        """POST /query with body {"sql": "..."}"""
        try:
            body = await request.json()
        except ValueError:
            return self._error("Invalid request")
        sql = body.get("sql") if isinstance(body, dict) else None
        if not isinstance(sql, str) or not sql.strip():
            return self._error("Invalid request")

        if not is_safe_query(sql):
            logger.warning(f"Rejected unsafe query: {sql!r}")
            return self._error("Unsafe query detected")

        try:
            # Worker thread, bounded by query_timeout
            loop = asyncio.get_running_loop()
            rows = await loop.run_in_executor(None, self.database.query, sql, self.query_timeout)
        except sqlite3.Error as e:
            logger.debug(f"Query failed: {e}")
            if str(e) == "interrupted":
                return self._error(f"Query exceeded {self.query_timeout}s and was interrupted")
            return self._error(str(e))

        metrics.record_query_request(200)
        return web.json_response({"data": rows})

    @staticmethod
    def _error(message: str, status: int = 400) -> web.Response:
        metrics.record_query_request(status)
        return web.json_response({"error": message}, status=status)
