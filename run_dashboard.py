# -*- coding: utf-8 -*-
#!/usr/bin/env python3
"""
run_dashboard.py

- reads config/fleet.json (utf-8), CLI flags override it
- opens the snapshot store (schema is created if missing)
- serves the fleet JSON API

Usage:
  python run_dashboard.py
  python run_dashboard.py --db /var/lib/fleet/fleet_data.sqlite --port 8080
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from fleet.config import ConfigError, load_config
from fleet.storage import Storage
from fleet.web_ui import create_app

log = logging.getLogger("fleetvital.run")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the fleet vitality API.")
    parser.add_argument("--config", type=Path, default=None, help="Path to fleet.json")
    parser.add_argument("--db", dest="db_path", default=None, help="SQLite snapshot store")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--log-level", dest="log_level", default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    overrides: Dict[str, Any] = {
        "db_path": args.db_path,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }

    try:
        cfg = load_config(args.config, overrides)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    cfg.db_path.parent.mkdir(parents=True, exist_ok=True)
    log.info("Snapshot store at %s", cfg.db_path)
    storage = Storage(str(cfg.db_path))

    app = create_app(cfg, storage)
    log.info("Starting fleet API on http://%s:%d/", cfg.host, cfg.port)
    app.run(host=cfg.host, port=cfg.port, debug=False)


if __name__ == "__main__":
    main()
