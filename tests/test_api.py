"""Tests for the read-only query API."""

import asyncio
import time

import pytest
from aiohttp import test_utils

from ethmetrics.api import QueryAPI, is_safe_query

LONG_QUERY = (
    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c LIMIT 1000000000) "
    "SELECT count(*) FROM c"
)


def run_with_client(database, scenario, **api_kwargs):
    """Run scenario(client) against a QueryAPI served on a test server."""

    async def runner():
        api = QueryAPI(database, **api_kwargs)
        async with test_utils.TestClient(test_utils.TestServer(api.app)) as client:
            return await scenario(client)

    return asyncio.run(runner())


class TestIsSafeQuery:
    @pytest.mark.parametrize(
        "query",
        [
            "DROP TABLE x",
            "drop table x",
            "  DrOp   TABLE   x  ",
            "SELECT 1;\nDROP\tTABLE x",
        ],
    )
    def test_drop_rejected(self, query):
        assert not is_safe_query(query)

    @pytest.mark.parametrize(
        "query",
        [
            "DELETE FROM t_eth_price",
            "UPDATE t_eth_price SET f_eth_price_usd = 0",
            "INSERT INTO t_eth_price VALUES (1, 2)",
            "ALTER TABLE t_eth_price ADD COLUMN x",
            "CREATE TABLE y (a)",
            "REPLACE INTO t_eth_price VALUES (1, 2)",
        ],
    )
    def test_modifying_statements_rejected(self, query):
        assert not is_safe_query(query)

    def test_select_accepted(self):
        assert is_safe_query("SELECT * FROM t_pools_metrics_summary WHERE f_epoch > 10")

    def test_keyword_inside_identifier_rejected(self):
        assert not is_safe_query("SELECT f_updated FROM t")


class TestQueryEndpoint:
    def test_select(self, database):
        database.store_proposal_duties(10, "pool", 2, 1)

        async def scenario(client):
            resp = await client.post("/query", json={"sql": "SELECT * FROM t_proposal_duties"})
            return resp.status, await resp.json()

        status, body = run_with_client(database, scenario)

        assert status == 200
        assert body == {
            "data": [
                {"f_epoch": 10, "f_pool": "pool", "f_n_scheduled_blocks": 2, "f_n_proposed_blocks": 1}
            ]
        }

    def test_unsafe_query(self, database):
        database.store_proposal_duties(10, "pool", 2, 1)

        async def scenario(client):
            resp = await client.post("/query", json={"sql": "  drop TABLE t_proposal_duties"})
            return resp.status, await resp.json()

        status, body = run_with_client(database, scenario)

        assert status == 400
        assert body == {"error": "Unsafe query detected"}
        assert len(database.query("SELECT * FROM t_proposal_duties")) == 1

    def test_invalid_json(self, database):
        async def scenario(client):
            resp = await client.post("/query", data="not json")
            return resp.status, await resp.json()

        status, body = run_with_client(database, scenario)

        assert status == 400
        assert body == {"error": "Invalid request"}

    def test_missing_sql(self, database):
        async def scenario(client):
            resp = await client.post("/query", json={"query": "SELECT 1"})
            return resp.status, await resp.json()

        status, body = run_with_client(database, scenario)

        assert status == 400
        assert body == {"error": "Invalid request"}

    def test_sql_error(self, database):
        async def scenario(client):
            resp = await client.post("/query", json={"sql": "SELECT * FROM no_such_table"})
            return resp.status, await resp.json()

        status, body = run_with_client(database, scenario)

        assert status == 400
        assert "no_such_table" in body["error"]

    def test_cors_header(self, database):
        async def scenario(client):
            resp = await client.post("/query", json={"sql": "SELECT 1 AS one"})
            return resp.headers.get("Access-Control-Allow-Origin"), await resp.json()

        origin, body = run_with_client(database, scenario)

        assert origin == "*"
        assert body == {"data": [{"one": 1}]}

    def test_health(self, database):
        async def scenario(client):
            resp = await client.get("/health")
            return resp.status

        assert run_with_client(database, scenario) == 200

    def test_long_query_interrupted_without_blocking(self, database):
        async def scenario(client):
            gaps = []
            done = asyncio.Event()

            async def heartbeat():
                last = time.monotonic()
                while not done.is_set():
                    await asyncio.sleep(0.05)
                    now = time.monotonic()
                    gaps.append(now - last)
                    last = now

            beat = asyncio.create_task(heartbeat())
            resp = await client.post("/query", json={"sql": LONG_QUERY})
            body = await resp.json()
            done.set()
            await beat
            return resp.status, body, max(gaps)

        status, body, longest_gap = run_with_client(database, scenario, query_timeout=0.5)

        assert status == 400
        assert "interrupted" in body["error"]
        assert longest_gap < 0.4
