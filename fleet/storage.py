# fleet/storage.py
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional

from .models import Snapshot

log = logging.getLogger("fleetvital.storage")


class StorageError(RuntimeError):
    """Raised when the snapshot store cannot be read."""


class Storage:
    """
    SQLite snapshot store for the fleet.

    Table node_snapshots (append-only, written by the ingestion process):
        id INTEGER PRIMARY KEY
        node_id TEXT              stable identity (see fleet.identity)
        network TEXT
        created_at REAL           capture time, epoch seconds
        health REAL               0..100, 0 == no signal
        uptime REAL               seconds since process start
        storage_committed REAL
        storage_used REAL
        credits REAL              NULL when untracked

        Optional (newer ingestors):
        rank REAL
        version TEXT
        pubkey TEXT
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._cols_cache: Dict[str, set] = {}
        self._ensure_schema()

    # ------------------------------------------------------------------
    # INTERNAL: Connection Helper
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        """One connection per operation, serialized by the global lock."""
        conn = sqlite3.connect(self.path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=2000;")
        return conn

    # ------------------------------------------------------------------
    # SCHEMA + MIGRATION
    # ------------------------------------------------------------------

    @staticmethod
    def _table_cols(cur: sqlite3.Cursor, table: str) -> set:
        return {row[1] for row in cur.execute(f"PRAGMA table_info({table})").fetchall()}

    def _table_cols_cached(self, cur: sqlite3.Cursor, table: str) -> set:
        if table not in self._cols_cache:
            self._cols_cache[table] = self._table_cols(cur, table)
        return self._cols_cache[table]

    def _ensure_schema(self) -> None:
        """Create the table and add optional columns missing from old DBs."""
        with self._lock:
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS node_snapshots (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        node_id TEXT NOT NULL,
                        network TEXT NOT NULL DEFAULT 'MAINNET',
                        created_at REAL NOT NULL,
                        health REAL,
                        uptime REAL,
                        storage_committed REAL,
                        storage_used REAL,
                        credits REAL
                    )
                    """
                )

                cols = self._table_cols(cur, "node_snapshots")
                if "rank" not in cols:
                    cur.execute("ALTER TABLE node_snapshots ADD COLUMN rank REAL;")
                if "version" not in cols:
                    cur.execute("ALTER TABLE node_snapshots ADD COLUMN version TEXT;")
                if "pubkey" not in cols:
                    cur.execute("ALTER TABLE node_snapshots ADD COLUMN pubkey TEXT;")

                cur.execute("CREATE INDEX IF NOT EXISTS idx_node_snapshots_created_at ON node_snapshots(created_at);")
                cur.execute(
                    "CREATE INDEX IF NOT EXISTS idx_node_snapshots_node_created "
                    "ON node_snapshots(node_id, created_at);"
                )
            finally:
                conn.close()

        self._cols_cache.clear()

    # ------------------------------------------------------------------
    # INGESTION API (external writer; the classifiers never call this)
    # ------------------------------------------------------------------

    def insert_snapshot(
        self,
        node_id: str,
        health: float,
        uptime: float,
        storage_committed: float = 0.0,
        storage_used: float = 0.0,
        credits: Optional[float] = None,
        network: str = "MAINNET",
        rank: Optional[float] = None,
        version: Optional[str] = None,
        pubkey: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> None:
        """
        Appends one snapshot. created_at defaults to the insert time.
        """
        ts = time.time() if created_at is None else float(created_at)

        with self._lock:
            conn = self._get_conn()
            try:
                cur = conn.cursor()
                cols = self._table_cols_cached(cur, "node_snapshots")

                base_cols = [
                    "node_id", "network", "created_at",
                    "health", "uptime", "storage_committed", "storage_used", "credits",
                ]
                base_vals: List[Any] = [
                    node_id, network, ts,
                    float(health), float(uptime), float(storage_committed), float(storage_used),
                    None if credits is None else float(credits),
                ]

                extra_cols = []
                extra_vals: List[Any] = []
                if "rank" in cols:
                    extra_cols.append("rank")
                    extra_vals.append(None if rank is None else float(rank))
                if "version" in cols:
                    extra_cols.append("version")
                    extra_vals.append(version)
                if "pubkey" in cols:
                    extra_cols.append("pubkey")
                    extra_vals.append(pubkey)

                all_cols = base_cols + extra_cols
                placeholders = ", ".join(["?"] * len(all_cols))
                cur.execute(
                    f"INSERT INTO node_snapshots ({', '.join(all_cols)}) VALUES ({placeholders})",
                    tuple(base_vals + extra_vals),
                )
            finally:
                conn.close()

    # ------------------------------------------------------------------
    # READ API
    # ------------------------------------------------------------------

    def fetch_history(
        self,
        node_id: str,
        since: Optional[float] = None,
        network: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Snapshot]:
        """
        All snapshots of one identity captured at or after `since`,
        ordered by capture time.
        """
        where = ["node_id = ?"]
        args: List[Any] = [node_id]
        if since is not None:
            where.append("created_at >= ?")
            args.append(float(since))
        if network:
            where.append("network = ?")
            args.append(network)
        order = "ASC" if ascending else "DESC"
        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT ?"
            args.append(int(limit))

        try:
            with self._lock:
                conn = self._get_conn()
                try:
                    rows = conn.execute(
                        f"""
                        SELECT *
                        FROM node_snapshots
                        WHERE {" AND ".join(where)}
                        ORDER BY created_at {order}, id {order}
                        {limit_sql}
                        """,
                        tuple(args),
                    ).fetchall()
                finally:
                    conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"history query failed for {node_id}: {e}") from e

        return [Snapshot.from_row(dict(r)) for r in rows]

    def latest_snapshot(self, node_id: str) -> Optional[Snapshot]:
        rows = self.fetch_history(node_id, ascending=False, limit=1)
        return rows[0] if rows else None

    def count_rows(self) -> int:
        with self._lock:
            conn = self._get_conn()
            try:
                res = conn.execute("SELECT COUNT(*) FROM node_snapshots").fetchone()
            finally:
                conn.close()
        return int(res[0]) if res else 0
