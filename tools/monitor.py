# -*- coding: utf-8 -*-
# tools/monitor.py
"""
Live terminal view of watchlist vitality.

Usage:
  python tools/monitor.py
  python tools/monitor.py --config config/fleet.json --interval 10 --range 24H
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from fleet.config import ConfigError, Watchlist, WatchEntry, load_config
from fleet.display import CONTINUITY_DISPLAY, STATUS_DISPLAY
from fleet.history import HistoryFetcher, HistoryPoller, PollTarget
from fleet.models import LiveNode, Snapshot, TimeRange
from fleet.pipeline import NodeReport, build_report, node_identity, query_since
from fleet.storage import Storage

console = Console()


# ------------------------------------------------------------
# fetch -> derive per watchlist entry
# ------------------------------------------------------------

def live_from_history(entry: WatchEntry, samples: List[Snapshot]) -> LiveNode:
    """The stored history is the only live source the monitor has: the newest row."""
    if not samples:
        return entry.live_node()
    last = samples[-1]
    return LiveNode(
        pubkey=entry.pubkey,
        address=entry.address,
        network=entry.network,
        uptime=last.uptime,
        last_seen=last.timestamp,
        health=last.health,
        version=last.version,
        is_public=entry.live_node().is_public,
    )


def make_target(entry: WatchEntry, tr: TimeRange) -> PollTarget:
    node_id = node_identity(entry.live_node())

    def derive(samples: List[Snapshot], error: Optional[str]) -> NodeReport:
        return build_report(live_from_history(entry, samples), samples, tr, node_id=node_id, error=error)

    return PollTarget(
        slot_name=node_id,
        node_id=node_id,
        since_fn=lambda: query_since(tr, time.time()),
        derive=derive,
        network=entry.network,
    )


# ------------------------------------------------------------
# Table rendering
# ------------------------------------------------------------

def build_table(entries: List[WatchEntry], reports: Dict[str, Optional[NodeReport]]) -> Table:
    table = Table(title="Fleet Vitality Monitor", expand=True)

    table.add_column("Node", style="bold")
    table.add_column("Identity")
    table.add_column("Status")
    table.add_column("Conf.", justify="right")
    table.add_column("Reason")
    table.add_column("Continuity")
    table.add_column("Samples", justify="right")

    for entry in entries:
        node_id = node_identity(entry.live_node())
        rep = reports.get(node_id)
        name = entry.label or entry.pubkey[:12]

        if rep is None:
            table.add_row(name, node_id, "[dim]pending[/dim]", "-", "-", "-", "-")
            continue

        status = rep.vitality.status
        cont = rep.continuity
        reason = rep.vitality.reason if not rep.error else f"[red]{escape(rep.error)}[/red]"
        table.add_row(
            name,
            node_id,
            Text(rep.vitality.label, style=STATUS_DISPLAY[status].style),
            f"{rep.vitality.confidence}%",
            reason,
            Text(f"{cont.label.value}: {cont.detail}", style=CONTINUITY_DISPLAY[cont.label].style),
            str(rep.raw_count),
        )

    return table


# ------------------------------------------------------------
# Main-Loop
# ------------------------------------------------------------

async def monitor_loop(storage: Storage, entries: List[WatchEntry], tr: TimeRange, interval_s: float) -> None:
    fetcher = HistoryFetcher(storage)
    targets = [make_target(e, tr) for e in entries]

    console.print("[cyan]Monitoring nodes:[/cyan] " + ", ".join(t.node_id for t in targets))

    with Live(refresh_per_second=4, console=console) as live:
        def refresh() -> None:
            reports = {t.slot_name: fetcher.slot(t.slot_name).value for t in targets}
            table = build_table(entries, reports)
            table.caption = f"range={tr.value}  every {interval_s:.0f}s  last={time.strftime('%H:%M:%S')}"
            live.update(table)

        poller = HistoryPoller(fetcher, targets, interval_s=interval_s, on_cycle=refresh)
        task = poller.start()
        try:
            await task
        finally:
            await poller.stop()


def main():
    parser = argparse.ArgumentParser(description="Fleet vitality live monitor")
    parser.add_argument("--config", type=Path, default=None, help="Path to fleet.json")
    parser.add_argument("--interval", type=float, default=None, help="Poll interval in seconds")
    parser.add_argument("--range", dest="time_range", default=None, help="24H, 3D, 7D, 30D or ALL")
    parser.add_argument(
        "--nodes",
        nargs="*",
        help="Only monitor these pubkeys (default: whole watchlist)",
    )
    args = parser.parse_args()

    try:
        cfg = load_config(args.config, {"poll_interval_s": args.interval, "default_range": args.time_range})
        entries = Watchlist.load(cfg.watchlist_path).entries
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(2)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.nodes:
        entries = [e for e in entries if e.pubkey in set(args.nodes)]
    if not entries:
        console.print("[red]No nodes to monitor.[/red] Add some to " + str(cfg.watchlist_path))
        sys.exit(1)

    storage = Storage(str(cfg.db_path))
    try:
        asyncio.run(monitor_loop(storage, entries, cfg.default_range, cfg.poll_interval_s))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user.[/yellow]")


if __name__ == "__main__":
    main()
