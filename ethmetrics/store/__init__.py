"""Metrics storage with SQLite persistence."""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Optional

from ..performance.schemas import ValidatorPerformanceMetrics

logger = logging.getLogger(__name__)

# SQLite VM instructions between deadline checks of a query
QUERY_PROGRESS_STEPS = 10_000


class Database:
    """SQLite-backed store for pool metrics, proposal duties and prices.

    Rows are keyed by (epoch, pool) and written with INSERT OR REPLACE, so
    reprocessing an epoch overwrites its previous result. Ad-hoc queries open
    their own read-only connection.
    """

    def __init__(self, path: str):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize SQLite database connection."""
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")  # Readers don't block the writer
        self._conn.execute("PRAGMA synchronous=NORMAL")
        logger.info(f"SQLite database opened at {self._path}")

    def create_tables(self) -> None:
        with self._lock:
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS t_pools_metrics_summary (
                    f_epoch INTEGER NOT NULL,
                    f_pool TEXT NOT NULL,
                    f_timestamp INTEGER,
                    f_n_validators INTEGER,
                    f_n_total_votes INTEGER,
                    f_n_incorrect_source INTEGER,
                    f_n_incorrect_target INTEGER,
                    f_n_incorrect_head INTEGER,
                    f_validators_with_less_balance TEXT,
                    f_validators_missed_attestation TEXT,
                    f_epoch_earned_balance_gwei INTEGER,
                    f_epoch_lost_balance_gwei INTEGER,
                    f_total_balance_gwei INTEGER,
                    f_effective_balance_gwei INTEGER,
                    f_total_rewards_gwei INTEGER,
                    f_delta_epoch_balance_gwei INTEGER,
                    PRIMARY KEY (f_epoch, f_pool)
                );
                CREATE TABLE IF NOT EXISTS t_proposal_duties (
                    f_epoch INTEGER NOT NULL,
                    f_pool TEXT NOT NULL,
                    f_n_scheduled_blocks INTEGER,
                    f_n_proposed_blocks INTEGER,
                    PRIMARY KEY (f_epoch, f_pool)
                );
                CREATE TABLE IF NOT EXISTS t_eth_price (
                    f_timestamp INTEGER NOT NULL,
                    f_eth_price_usd REAL
                );
                CREATE INDEX IF NOT EXISTS idx_eth_price_timestamp ON t_eth_price(f_timestamp);
            """)
            self._conn.commit()
        logger.info("Database tables ready")

    def store_validator_performance(self, metrics: ValidatorPerformanceMetrics) -> None:
        """Insert or replace the record of (epoch, pool)."""
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO t_pools_metrics_summary (
                    f_epoch, f_pool, f_timestamp, f_n_validators, f_n_total_votes,
                    f_n_incorrect_source, f_n_incorrect_target, f_n_incorrect_head,
                    f_validators_with_less_balance, f_validators_missed_attestation,
                    f_epoch_earned_balance_gwei, f_epoch_lost_balance_gwei,
                    f_total_balance_gwei, f_effective_balance_gwei,
                    f_total_rewards_gwei, f_delta_epoch_balance_gwei
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    metrics.epoch,
                    metrics.pool_name,
                    int(metrics.time.timestamp()),
                    metrics.n_validating_keys,
                    metrics.n_total_votes,
                    metrics.n_incorrect_source,
                    metrics.n_incorrect_target,
                    metrics.n_incorrect_head,
                    json.dumps(list(metrics.indexes_less_balance)),
                    json.dumps(list(metrics.indexes_missed_att)),
                    metrics.earned_balance,
                    metrics.lost_balance,
                    metrics.total_balance,
                    metrics.effective_balance,
                    metrics.total_rewards,
                    metrics.delta_epoch_balance,
                ),
            )
            self._conn.commit()
        logger.debug(f"Stored validator performance: epoch={metrics.epoch}, pool={metrics.pool_name}")

    def store_proposal_duties(self, epoch: int, pool: str, scheduled: int, proposed: int) -> None:
        """Insert or replace the proposal counts of (epoch, pool)."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO t_proposal_duties "
                "(f_epoch, f_pool, f_n_scheduled_blocks, f_n_proposed_blocks) VALUES (?, ?, ?, ?)",
                (epoch, pool, scheduled, proposed),
            )
            self._conn.commit()
        logger.debug(f"Stored proposal duties: epoch={epoch}, pool={pool}")

    def store_eth_price(self, price_usd: float, timestamp: Optional[int] = None) -> None:
        if timestamp is None:
            timestamp = int(time.time())
        with self._lock:
            self._conn.execute(
                "INSERT INTO t_eth_price (f_timestamp, f_eth_price_usd) VALUES (?, ?)",
                (timestamp, price_usd),
            )
            self._conn.commit()

    def get_missing_epochs(self, target: int, window: int) -> list[int]:
        """Epochs in [target - window + 1, target] without a performance record.

        Returns:
            Ascending list of epochs, empty when window <= 0
        """
        if window <= 0:
            return []
        start = max(0, target - window + 1)
        with self._lock:
            rows = self._conn.execute(
                "SELECT DISTINCT f_epoch FROM t_pools_metrics_summary "
                "WHERE f_epoch BETWEEN ? AND ?",
                (start, target),
            ).fetchall()
        stored = {row[0] for row in rows}
        return [e for e in range(start, target + 1) if e not in stored]

    def query(self, sql: str, timeout: Optional[float] = None) -> list[dict[str, Any]]:
        """Run a statement on a fresh read-only connection.

        Safe to call from a worker thread; it shares nothing with the
        writer connection. With a timeout the statement is interrupted once
        the deadline passes.

        Raises:
            sqlite3.Error: if the statement fails, tries to write or is interrupted
        """
        conn = sqlite3.connect(f"file:{self._path.resolve()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        if timeout is not None:
            deadline = time.monotonic() + timeout
            conn.set_progress_handler(lambda: time.monotonic() > deadline, QUERY_PROGRESS_STEPS)
        try:
            rows = conn.execute(sql).fetchall()
        finally:
            conn.close()

        result = []
        for row in rows:
            record = {}
            for key in row.keys():
                value = row[key]
                if isinstance(value, bytes):
                    value = value.decode(errors="replace")
                record[key] = value
            result.append(record)
        return result

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
        logger.info("SQLite database closed")


__all__ = ["Database"]
