# -*- coding: utf-8 -*-
"""
Usage:
  python3 tools/db_inspect.py schema
  python3 tools/db_inspect.py counts
  python3 tools/db_inspect.py nodes
  python3 tools/db_inspect.py tail 20
  python3 tools/db_inspect.py tail 20 <node_id>
  python3 tools/db_inspect.py resets <node_id>

DB path: $FLEET_DB or ./fleet_data.sqlite
"""

import os
import sqlite3
import sys
from datetime import datetime, timezone
from pathlib import Path

from fleet.continuity import detect_resets
from fleet.models import Snapshot

BASE_DIR = Path(__file__).resolve().parents[1]
DB_PATH = Path(os.environ.get("FLEET_DB", BASE_DIR / "fleet_data.sqlite"))


def utc(ts) -> str:
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError):
        return "n/a"


def q(conn, sql, args=()):
    cur = conn.cursor()
    cur.execute(sql, args)
    return cur.fetchall(), [d[0] for d in cur.description] if cur.description else []


def print_table(rows, cols):
    if not cols:
        print("(no columns)")
        return
    widths = [len(c) for c in cols]
    for r in rows:
        for i, c in enumerate(cols):
            v = r[i]
            s = "" if v is None else str(v)
            widths[i] = max(widths[i], len(s))
    fmt = " | ".join("{:<" + str(w) + "}" for w in widths)
    print(fmt.format(*cols))
    print("-+-".join("-" * w for w in widths))
    for r in rows:
        print(fmt.format(*["" if v is None else str(v) for v in r]))


def schema(conn):
    rows, _ = q(conn, "SELECT name, sql FROM sqlite_master WHERE type='table' ORDER BY name;")
    for name, sql in rows:
        print(f"\n=== {name} ===")
        print(sql)


def counts(conn):
    rows, _ = q(conn, "SELECT COUNT(*), COUNT(DISTINCT node_id), MIN(created_at), MAX(created_at) FROM node_snapshots;")
    n, nodes, t0, t1 = rows[0]
    print_table([(n, nodes, utc(t0), utc(t1))], ["rows", "identities", "first", "last"])


def nodes(conn):
    rows, cols_ = q(
        conn,
        """
        SELECT node_id, network, COUNT(*) AS n, MAX(created_at) AS last_seen
        FROM node_snapshots
        GROUP BY node_id, network
        ORDER BY last_seen DESC;
        """,
    )
    rows = [(r[0], r[1], r[2], utc(r[3])) for r in rows]
    print_table(rows, cols_)


def tail(conn, n, node_id=None):
    if node_id:
        rows, cols_ = q(
            conn,
            "SELECT * FROM node_snapshots WHERE node_id = ? ORDER BY created_at DESC LIMIT ?;",
            (node_id, int(n)),
        )
    else:
        rows, cols_ = q(conn, "SELECT * FROM node_snapshots ORDER BY created_at DESC LIMIT ?;", (int(n),))
    if "created_at" in cols_:
        i = cols_.index("created_at")
        rows = [list(r) for r in rows]
        for r in rows:
            r[i] = f"{r[i]} ({utc(r[i])})"
    print_table(rows, cols_)


def resets(conn, node_id):
    conn.row_factory = sqlite3.Row
    rows = conn.execute(
        "SELECT * FROM node_snapshots WHERE node_id = ? ORDER BY created_at ASC;", (node_id,)
    ).fetchall()
    snaps = [Snapshot.from_row(dict(r)) for r in rows]
    count, last_at = detect_resets(snaps)
    print_table([(node_id, len(snaps), count, utc(last_at) if last_at else "-")],
                ["node_id", "samples", "resets", "last_reset"])


def main():
    if not DB_PATH.exists():
        print(f"DB not found: {DB_PATH}")
        sys.exit(2)

    cmd = sys.argv[1] if len(sys.argv) > 1 else "schema"

    conn = sqlite3.connect(str(DB_PATH))
    try:
        if cmd == "schema":
            schema(conn)
        elif cmd == "counts":
            counts(conn)
        elif cmd == "nodes":
            nodes(conn)
        elif cmd == "tail":
            n = sys.argv[2] if len(sys.argv) > 2 else 20
            tail(conn, n, sys.argv[3] if len(sys.argv) > 3 else None)
        elif cmd == "resets" and len(sys.argv) > 2:
            resets(conn, sys.argv[2])
        else:
            print("Unknown command.")
            sys.exit(2)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
