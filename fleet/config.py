# -*- coding: utf-8 -*-
# fleet/config.py
"""
Process configuration and persisted preferences.

config/fleet.json (all keys optional):

    {
      "db_path": "fleet_data.sqlite",
      "poll_interval_s": 10,
      "default_range": "7D",
      "host": "0.0.0.0",
      "port": 5000,
      "log_level": "INFO",
      "watchlist_path": "config/watchlist.json"
    }

The watchlist lives in its own file because the dashboard rewrites it;
fleet.json is only ever read.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import LiveNode, TimeRange

BASE_DIR = Path(__file__).resolve().parent.parent
CFG_PATH = BASE_DIR / "config" / "fleet.json"

DEFAULTS: Dict[str, Any] = {
    "db_path": "fleet_data.sqlite",
    "poll_interval_s": 10.0,
    "default_range": "7D",
    "host": "0.0.0.0",
    "port": 5000,
    "log_level": "INFO",
    "watchlist_path": "config/watchlist.json",
}


class ConfigError(ValueError):
    pass


def _resolve(path: str, base: Path) -> Path:
    p = Path(path)
    return p if p.is_absolute() else base / p


@dataclass
class FleetConfig:
    db_path: Path
    poll_interval_s: float
    default_range: TimeRange
    host: str
    port: int
    log_level: str
    watchlist_path: Path

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], base: Path = BASE_DIR) -> "FleetConfig":
        merged = dict(DEFAULTS)
        merged.update({k: v for k, v in (raw or {}).items() if v is not None})
        try:
            interval = float(merged["poll_interval_s"])
            port = int(merged["port"])
            default_range = TimeRange.parse(merged["default_range"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid config: {e}") from e
        if interval <= 0:
            raise ConfigError("poll_interval_s must be > 0")

        return cls(
            db_path=_resolve(str(merged["db_path"]), base),
            poll_interval_s=interval,
            default_range=default_range,
            host=str(merged["host"]),
            port=port,
            log_level=str(merged["log_level"]).upper(),
            watchlist_path=_resolve(str(merged["watchlist_path"]), base),
        )


def load_config(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> FleetConfig:
    """Read fleet.json (missing file -> defaults) and apply CLI overrides on top."""
    path = Path(path) if path is not None else CFG_PATH
    raw: Dict[str, Any] = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{path}: top level must be an object")

    merged = dict(raw)
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return FleetConfig.from_dict(merged, base=path.parent.parent if path.parent.name == "config" else path.parent)


# ---------------------------------------------------------------------
# Watchlist (persisted preference)
# ---------------------------------------------------------------------

@dataclass
class WatchEntry:
    pubkey: str
    address: Optional[str] = None
    network: str = "MAINNET"
    label: Optional[str] = None
    masked: bool = False  # address hides the real host (NAT, relay)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WatchEntry":
        if not isinstance(d, dict) or not d.get("pubkey"):
            raise ConfigError(f"watchlist entry needs a pubkey: {d!r}")
        return cls(
            pubkey=str(d["pubkey"]),
            address=d.get("address"),
            network=str(d.get("network") or "MAINNET").upper(),
            label=d.get("label"),
            masked=bool(d.get("masked", False)),
        )

    def live_node(self) -> LiveNode:
        """Bare live record for identity derivation; live values come from elsewhere."""
        return LiveNode(self.pubkey, self.address, self.network, is_public=False if self.masked else None)


@dataclass
class Watchlist:
    path: Path
    entries: List[WatchEntry] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "Watchlist":
        path = Path(path)
        if not path.exists():
            return cls(path=path)
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
        items = raw.get("nodes", []) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise ConfigError(f"{path}: expected a list of nodes")
        return cls(path=path, entries=[WatchEntry.from_dict(d) for d in items])

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump({"nodes": [asdict(e) for e in self.entries]}, f, indent=2)
        os.replace(tmp, self.path)

    def add(self, entry: WatchEntry) -> bool:
        if any(e.pubkey == entry.pubkey and e.network == entry.network for e in self.entries):
            return False
        self.entries.append(entry)
        return True

    def remove(self, pubkey: str, network: Optional[str] = None) -> bool:
        before = len(self.entries)
        self.entries = [
            e for e in self.entries
            if not (e.pubkey == pubkey and (network is None or e.network == network.upper()))
        ]
        return len(self.entries) != before
