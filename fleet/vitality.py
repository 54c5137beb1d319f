# -*- coding: utf-8 -*-
# fleet/vitality.py
"""
Live vitality of a node: a stateless priority waterfall re-run on every read.

    1  OFFLINE    not seen > 120m, ghosting, or late (> 45m) right after a boot (< 300s)
    2  STAGNANT   uptime counter frozen over the last hour
    3  UNSTABLE   > 5 restarts in 24h, or last seen > 30m ago
    4  WARMUP     uptime < 1800s
    5  ONLINE     everything else

The first level that matches wins. Missing history only disables the
history-based checks (frozen, restarts, ghosting); it never raises.
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from .models import DAY_S, HOUR_S, LiveNode, Snapshot, VitalityResult, VitalityStatus

# Level 1
OFFLINE_AFTER_MIN = 120.0
LATE_BOOT_AFTER_MIN = 45.0
LATE_BOOT_UPTIME_S = 300.0

# Level 2
FROZEN_LOOKBACK_S = HOUR_S
FROZEN_MAX_DELTA_S = 60.0
FROZEN_MIN_UPTIME_S = 1000.0

# Level 3
RESTART_TOLERANCE_S = 60.0
RESTART_WINDOW_S = DAY_S
MAX_RESTARTS = 5
LATE_AFTER_MIN = 30.0

# Level 4
WARMUP_UPTIME_S = 1800.0

# Ghosting
GHOST_WINDOW_S = 6 * HOUR_S
GHOST_MIN_SAMPLES = 5
GHOST_ZERO_RATIO = 0.8


def _ascending(history: Sequence[Snapshot]) -> List[Snapshot]:
    return sorted(history, key=lambda s: s.timestamp)


def minutes_since(ts: Optional[float], now: float) -> float:
    if ts is None:
        return float("inf")
    return max(0.0, (now - float(ts)) / 60.0)


def count_restarts(
    history: Sequence[Snapshot],
    now: float,
    window_s: float = RESTART_WINDOW_S,
    tolerance_s: float = RESTART_TOLERANCE_S,
) -> int:
    """Uptime drops larger than `tolerance_s` whose later sample lies in the window."""
    pts = _ascending(history)
    cutoff = now - window_s
    n = 0
    for prev, curr in zip(pts, pts[1:]):
        if curr.timestamp < cutoff:
            continue
        if curr.uptime < prev.uptime - tolerance_s:
            n += 1
    return n


def is_frozen(uptime_now: float, history: Sequence[Snapshot], now: float) -> bool:
    """
    The newest sample older than one hour barely differs from the live uptime
    while the node claims to have been up for a while.
    """
    older = [s for s in history if now - s.timestamp > FROZEN_LOOKBACK_S]
    if not older:
        return False
    ref = max(older, key=lambda s: s.timestamp)
    return abs(uptime_now - ref.uptime) < FROZEN_MAX_DELTA_S and uptime_now > FROZEN_MIN_UPTIME_S


def ghost_ratio(history: Sequence[Snapshot], now: float) -> Optional[float]:
    """Share of zero-health samples in the trailing window, None below the sample floor."""
    recent = [s for s in history if 0 <= now - s.timestamp <= GHOST_WINDOW_S]
    if len(recent) <= GHOST_MIN_SAMPLES:
        return None
    zeros = sum(1 for s in recent if s.health == 0)
    return zeros / len(recent)


def is_ghosting(history: Sequence[Snapshot], now: float) -> bool:
    ratio = ghost_ratio(history, now)
    return ratio is not None and ratio > GHOST_ZERO_RATIO


def classify_vitality(
    node: LiveNode,
    history: Sequence[Snapshot] = (),
    now: Optional[float] = None,
) -> VitalityResult:
    now = time.time() if now is None else float(now)
    history = history or ()

    since_min = minutes_since(node.last_seen, now)
    uptime = float(node.uptime or 0.0)

    # --- 1. OFFLINE: absence of data dominates everything else ---
    if since_min > OFFLINE_AFTER_MIN:
        seen = "never seen" if since_min == float("inf") else f"no contact for {since_min:.0f}m"
        return VitalityResult(VitalityStatus.OFFLINE, "OFFLINE", f"Unreachable: {seen}", 100)

    ratio = ghost_ratio(history, now)
    if ratio is not None and ratio > GHOST_ZERO_RATIO:
        return VitalityResult(
            VitalityStatus.OFFLINE,
            "OFFLINE",
            f"Ghosting: {ratio:.0%} of snapshots in the last 6h carried no signal",
            100,
        )

    if since_min > LATE_BOOT_AFTER_MIN and uptime < LATE_BOOT_UPTIME_S:
        return VitalityResult(
            VitalityStatus.OFFLINE,
            "OFFLINE",
            f"Failed boot: uptime {uptime:.0f}s and last seen {since_min:.0f}m ago",
            100,
        )

    # --- 2. STAGNANT ---
    if is_frozen(uptime, history, now):
        return VitalityResult(
            VitalityStatus.STAGNANT,
            "STAGNANT",
            "Process hung: uptime counter frozen despite recent contact",
            95,
        )

    # --- 3. UNSTABLE ---
    restarts = count_restarts(history, now)
    if restarts > MAX_RESTARTS:
        return VitalityResult(
            VitalityStatus.UNSTABLE,
            "UNSTABLE",
            f"High volatility: {restarts} restarts detected",
            85,
        )
    if since_min > LATE_AFTER_MIN:
        return VitalityResult(
            VitalityStatus.UNSTABLE,
            "UNSTABLE",
            f"High latency: last seen {since_min:.0f}m ago",
            85,
        )

    # --- 4. WARMUP ---
    if uptime < WARMUP_UPTIME_S:
        return VitalityResult(
            VitalityStatus.WARMUP,
            "WARMING UP",
            f"Node restarted {int(uptime / 60 + 0.5)}m ago. Stabilizing.",
            100,
        )

    # --- 5. ONLINE ---
    return VitalityResult(VitalityStatus.ONLINE, "ONLINE", "Healthy heartbeat and consistent history", 100)
