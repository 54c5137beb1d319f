# -*- coding: utf-8 -*-
# fleet/web_ui.py
#
# JSON API for the fleet dashboard.
#
# Principles:
#   - Rendering lives in the front end; this server only ships shaped data.
#   - Live status comes from query args when the caller has them (the fleet
#     poller does), else from the newest stored snapshot.
#   - A broken store degrades to an empty history plus an "error" field (503),
#     never to a crash.
#
# Run:
#   python run_dashboard.py   (or python -m fleet.web_ui)
#
from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Dict, Optional

from flask import Flask, jsonify, make_response, request

from .config import ConfigError, FleetConfig, Watchlist, WatchEntry, load_config
from .display import ARCHETYPE_DISPLAY, CONTINUITY_DISPLAY, STATUS_DISPLAY
from .forensics import ForensicContext
from .models import LiveNode, TimeRange
from .pipeline import NodeReport, inspect_node_sync, node_identity
from .storage import Storage, StorageError

log = logging.getLogger("fleetvital.web_ui")


# -----------------------------
# Safe helpers
# -----------------------------
def _json_error(msg: str, status: int = 500):
    return make_response(jsonify({"error": str(msg)}), int(status))


def _f(x: Any) -> Optional[float]:
    if x is None or x == "":
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        raise ValueError(f"not a number: {x!r}")


def _flag(x: Any) -> bool:
    return str(x or "").strip().lower() in ("1", "true", "yes")


def _live_node_from_args(storage: Storage) -> LiveNode:
    args = request.args
    pubkey = (args.get("pubkey") or "").strip()
    if not pubkey:
        raise ValueError("pubkey is required")

    node = LiveNode(
        pubkey=pubkey,
        address=args.get("address"),
        network=(args.get("network") or "MAINNET").upper(),
        uptime=_f(args.get("uptime")) or 0.0,
        last_seen=_f(args.get("last_seen")),
        storage_committed=_f(args.get("committed")),
        version=args.get("version"),
        is_public=False if _flag(args.get("masked")) else None,
    )
    if args.get("uptime") is not None and node.last_seen is not None:
        return node

    # No live values supplied: the newest stored snapshot stands in for them.
    try:
        latest = storage.latest_snapshot(node_identity(node))
    except StorageError as e:
        log.warning("latest snapshot unavailable: %s", e)
        latest = None
    if latest is None:
        return node
    return LiveNode(
        pubkey=node.pubkey,
        address=node.address,
        network=node.network,
        uptime=latest.uptime if args.get("uptime") is None else node.uptime,
        last_seen=latest.timestamp if node.last_seen is None else node.last_seen,
        health=latest.health,
        storage_committed=node.storage_committed,
        version=node.version or latest.version,
        is_public=node.is_public,
    )


def _context_from_args() -> ForensicContext:
    args = request.args
    known = tuple(v for v in (args.get("versions") or "").split(",") if v)
    return ForensicContext(
        consensus_version=args.get("consensus") or None,
        known_versions=known,
        first_seen=_f(args.get("first_seen")),
    )


def _report_response(report: NodeReport, body: Dict[str, Any]):
    if report.error:
        body["error"] = report.error
        return make_response(jsonify(body), 503)
    return jsonify(body)


# -----------------------------
# App factory
# -----------------------------
def create_app(cfg: Optional[FleetConfig] = None, storage: Optional[Storage] = None) -> Flask:
    cfg = cfg or load_config()
    app = Flask(__name__)
    app.config["FLEET"] = cfg
    app.config["STORAGE"] = storage or Storage(str(cfg.db_path))

    def _storage() -> Storage:
        return app.config["STORAGE"]

    @app.route("/api/health")
    def api_health():
        return jsonify({"ok": True, "time": time.time()})

    @app.route("/api/display")
    def api_display():
        return jsonify({
            "archetypes": {k.value: v.to_dict() for k, v in ARCHETYPE_DISPLAY.items()},
            "statuses": {k.value: v.to_dict() for k, v in STATUS_DISPLAY.items()},
            "continuity": {k.value: v.to_dict() for k, v in CONTINUITY_DISPLAY.items()},
        })

    @app.route("/api/node/history")
    def api_node_history():
        try:
            tr = TimeRange.parse(request.args.get("range") or cfg.default_range)
            node = _live_node_from_args(_storage())
            ctx = _context_from_args()
            capacity = _flag(request.args.get("capacity_sensitive"))
        except ValueError as e:
            return _json_error(str(e), 400)
        try:
            report = inspect_node_sync(_storage(), node, tr, ctx=ctx, capacity_sensitive=capacity)
            return _report_response(report, report.to_dict())
        except Exception as e:
            log.exception("/api/node/history failed")
            return _json_error(f"/api/node/history failed: {e}", 500)

    @app.route("/api/node/vitality")
    def api_node_vitality():
        try:
            node = _live_node_from_args(_storage())
        except ValueError as e:
            return _json_error(str(e), 400)
        try:
            report = inspect_node_sync(_storage(), node, TimeRange.D30)
            body = {
                "node_id": report.node_id,
                "vitality": report.vitality.to_dict(),
                "continuity": report.continuity.to_dict(),
                "display": STATUS_DISPLAY[report.vitality.status].to_dict(),
            }
            return _report_response(report, body)
        except Exception as e:
            log.exception("/api/node/vitality failed")
            return _json_error(f"/api/node/vitality failed: {e}", 500)

    @app.route("/api/watchlist", methods=["GET"])
    def api_watchlist():
        try:
            wl = Watchlist.load(cfg.watchlist_path)
        except ConfigError as e:
            return _json_error(str(e), 500)
        return jsonify({"nodes": [
            dict(asdict(e), node_id=node_identity(e.live_node()))
            for e in wl.entries
        ]})

    @app.route("/api/watchlist", methods=["POST"])
    def api_watchlist_add():
        try:
            entry = WatchEntry.from_dict(request.get_json(silent=True) or {})
            wl = Watchlist.load(cfg.watchlist_path)
        except ConfigError as e:
            return _json_error(str(e), 400)
        added = wl.add(entry)
        if added:
            wl.save()
        return make_response(jsonify({"added": added, "count": len(wl.entries)}), 201 if added else 200)

    @app.route("/api/watchlist/<pubkey>", methods=["DELETE"])
    def api_watchlist_remove(pubkey: str):
        try:
            wl = Watchlist.load(cfg.watchlist_path)
        except ConfigError as e:
            return _json_error(str(e), 500)
        removed = wl.remove(pubkey, request.args.get("network"))
        if removed:
            wl.save()
        return jsonify({"removed": removed, "count": len(wl.entries)})

    return app


if __name__ == "__main__":
    _cfg = load_config()
    print(f"Starting fleet dashboard API on http://{_cfg.host}:{_cfg.port}/")
    create_app(_cfg).run(host=_cfg.host, port=_cfg.port, debug=False)
