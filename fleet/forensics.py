# -*- coding: utf-8 -*-
# fleet/forensics.py - per-point archetypes for the timeline ribbon

from __future__ import annotations

import re
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    DAY_S,
    HOUR_S,
    Archetype,
    Issue,
    Pin,
    PointAnalysis,
    Severity,
    Snapshot,
)

WINDOW_SIZE = 5
REFERENCE_TOLERANCE_S = HOUR_S

SYNCING_UPTIME_S = 900.0
FROZEN_MIN_SPAN_S = 20 * HOUR_S
FROZEN_MAX_DELTA_S = 60.0
RESTART_DROP_S = 100.0
YOUNG_AGE_S = 3 * DAY_S
HEALTH_DROP_POINTS = 10.0


# ---------------------------------------------------------------------
# Issue catalog
# ---------------------------------------------------------------------

ISSUE_CATALOG: Dict[str, Tuple[Severity, str, str]] = {
    "V_OFFLINE": (Severity.CRITICAL, "System Offline", "Node is unreachable."),
    "V_OBSOLETE": (Severity.CRITICAL, "Update Required", "Consensus lost. Update ASAP."),

    "V_FROZEN_UPTIME": (Severity.WARNING, "Process Hung", "Uptime stuck for >24h. Restart needed."),
    "V_STAGNANT": (Severity.WARNING, "Zero Yield", "Online but earning nothing."),
    "V_LAGGING": (Severity.WARNING, "Version Lag", "Newer version available."),
    "V_VOLATILE": (Severity.WARNING, "Instability", "Frequent restarts detected."),
    "V_GHOST": (Severity.WARNING, "Data Gaps", "Irregular reporting patterns."),
    "V_HEALTH_DROP": (Severity.WARNING, "Health Decline", "Health score below its level 24h earlier."),

    "V_RESTART": (Severity.INFO, "System Restart", "Uptime reset detected."),
    "V_UPDATE": (Severity.INFO, "Software Update", "Version changed recently."),
    "V_SYNCING": (Severity.INFO, "Syncing", "Initializing network data."),
}


@dataclass(frozen=True)
class ForensicContext:
    """
    Fleet-level facts a single point cannot carry itself. Every field is
    optional; checks that need a missing field are skipped.
    """
    consensus_version: Optional[str] = None
    known_versions: Tuple[str, ...] = ()
    first_seen: Optional[float] = None
    restarts_7d: Optional[int] = None
    consistency: Optional[float] = None


# ---------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------

def clean_semver(v: Optional[str]) -> str:
    if not v:
        return "0.0.0"
    main = str(v).split("-")[0]  # 1.2.0-trynet -> 1.2.0
    return re.sub(r"[^0-9.]", "", main) or "0.0.0"


def compare_versions(v1: str, v2: str) -> int:
    p1 = [int(x) if x else 0 for x in clean_semver(v1).split(".")]
    p2 = [int(x) if x else 0 for x in clean_semver(v2).split(".")]
    for i in range(max(len(p1), len(p2))):
        n1 = p1[i] if i < len(p1) else 0
        n2 = p2[i] if i < len(p2) else 0
        if n1 != n2:
            return 1 if n1 > n2 else -1
    return 0


def version_status(
    node_version: Optional[str],
    known_versions: Sequence[str],
    consensus: Optional[str],
) -> Tuple[bool, bool, bool]:
    """
    (latest, lagging, obsolete) on the collapsed version ladder.

    At or above consensus is latest. Otherwise the distance from consensus
    on the de-duplicated, descending list of known versions decides:
    1-2 steps lagging, 3+ (or not on the ladder at all) obsolete.
    """
    if not consensus:
        return False, False, False
    if not node_version:
        return False, True, False

    node = clean_semver(node_version)
    cons = clean_semver(consensus)
    if compare_versions(node, cons) >= 0:
        return True, False, False

    ladder = sorted({clean_semver(v) for v in known_versions}, key=_version_key, reverse=True)
    if node not in ladder:
        return False, False, True

    cons_index = ladder.index(cons) if cons in ladder else -1
    distance = ladder.index(node) - cons_index
    if 0 < distance <= 2:
        return False, True, False
    if distance >= 3:
        return False, False, True
    return True, False, False


def _version_key(v: str) -> Tuple[int, ...]:
    return tuple(int(x) if x else 0 for x in v.split("."))


# ---------------------------------------------------------------------
# 24h reference lookup
# ---------------------------------------------------------------------

def _nearest(times: List[float], points: Sequence[Snapshot], target: float, before: float,
             tolerance_s: float) -> Optional[Snapshot]:
    lo = bisect_left(times, target - tolerance_s)
    hi = bisect_right(times, target + tolerance_s)
    best: Optional[Snapshot] = None
    for i in range(lo, hi):
        if times[i] >= before:
            break
        # strict < keeps the earliest of equally near candidates
        if best is None or abs(times[i] - target) < abs(best.timestamp - target):
            best = points[i]
    return best


def find_reference_24h(
    series: Sequence[Snapshot],
    timestamp: float,
    tolerance_s: float = REFERENCE_TOLERANCE_S,
) -> Optional[Snapshot]:
    """
    Sample of an ascending series nearest to `timestamp - 24h`, within
    +/- tolerance. None when nothing falls in the window.
    """
    times = [p.timestamp for p in series]
    return _nearest(times, series, timestamp - DAY_S, timestamp, tolerance_s)


# ---------------------------------------------------------------------
# Vectors
# ---------------------------------------------------------------------

def _restarts_in(points: Sequence[Snapshot]) -> int:
    return sum(1 for prev, curr in zip(points, points[1:]) if curr.uptime < prev.uptime - RESTART_DROP_S)


def compute_vectors(
    point: Snapshot,
    window: Sequence[Snapshot],
    ref: Optional[Snapshot],
    ctx: ForensicContext,
) -> Dict[str, bool]:
    uptime = point.uptime or 0.0

    # --- status ---
    v_offline = uptime == 0
    v_syncing = 0 < uptime < SYNCING_UPTIME_S

    v_frozen = False
    v_health_drop = False
    if ref is not None:
        span = point.timestamp - ref.timestamp
        if not v_offline and span > FROZEN_MIN_SPAN_S and abs(point.uptime - ref.uptime) < FROZEN_MAX_DELTA_S:
            v_frozen = True
        if ref.health > 0 and point.health > 0 and point.health <= ref.health - HEALTH_DROP_POINTS:
            v_health_drop = True

    # --- version ---
    v_latest, v_lagging, v_obsolete = version_status(point.version, ctx.known_versions, ctx.consensus_version)

    # --- stability ---
    seq = list(window) + [point]
    restarts = ctx.restarts_7d if ctx.restarts_7d is not None else _restarts_in(seq)
    if ctx.consistency is not None:
        consistency = ctx.consistency
    else:
        consistency = sum(1 for p in seq if p.health > 0) / len(seq)

    # --- economics ---
    v_untracked = point.credits is None
    velocity = 0.0
    if window:
        velocity = (point.credits or 0.0) - (window[0].credits or 0.0)
    v_producing = velocity > 0
    v_stagnant = (
        bool(window) and not v_untracked and velocity == 0
        and not v_frozen and not v_offline and not v_syncing
    )

    # --- age ---
    v_young = ctx.first_seen is not None and (point.timestamp - ctx.first_seen) < YOUNG_AGE_S

    # --- events ---
    prev = window[-1] if window else None
    v_restart = prev is not None and point.uptime < prev.uptime - RESTART_DROP_S
    v_update = (
        prev is not None and prev.version is not None and point.version is not None
        and prev.version != point.version
    )

    return {
        "V_OFFLINE": v_offline,
        "V_SYNCING": v_syncing,
        "V_FROZEN_UPTIME": v_frozen,
        "V_LATEST": v_latest,
        "V_LAGGING": v_lagging,
        "V_OBSOLETE": v_obsolete,
        "V_STABLE": restarts == 0,
        "V_JITTERY": 1 <= restarts <= 5,
        "V_VOLATILE": restarts > 5,
        "V_CONSISTENT": consistency > 0.95,
        "V_GHOST": consistency < 0.80,
        "V_PRODUCING": v_producing,
        "V_STAGNANT": v_stagnant,
        "V_UNTRACKED": v_untracked,
        "V_PENALIZED": restarts > 0,
        "V_YOUNG": v_young,
        "V_RESTART": v_restart,
        "V_UPDATE": v_update,
        "V_HEALTH_DROP": v_health_drop,
    }


# ---------------------------------------------------------------------
# Archetype matrix
# ---------------------------------------------------------------------

def _archetype(v: Dict[str, bool]) -> Tuple[Archetype, str]:
    if v["V_OFFLINE"] or (v["V_OBSOLETE"] and (v["V_STAGNANT"] or v["V_UNTRACKED"])):
        return Archetype.CRITICAL, "OFFLINE" if v["V_OFFLINE"] else "OBSOLETE"

    if v["V_VOLATILE"] or (v["V_PENALIZED"] and (v["V_JITTERY"] or v["V_STAGNANT"])):
        return Archetype.TRAUMA, "TRAUMA STATE"

    if v["V_FROZEN_UPTIME"] or v["V_STAGNANT"] or v["V_LAGGING"] or v["V_GHOST"] or v["V_OBSOLETE"]:
        if v["V_FROZEN_UPTIME"]:
            label = "FROZEN (24H)"
        elif v["V_STAGNANT"]:
            label = "ZOMBIE STATE"
        elif v["V_LAGGING"]:
            label = "VERSION LAG"
        elif v["V_OBSOLETE"]:
            label = "OBSOLETE (ACTIVE)"
        else:
            label = "CONSISTENCY DRIFT"
        return Archetype.DRIFT, label

    if v["V_SYNCING"] or (v["V_YOUNG"] and v["V_PRODUCING"]) or (v["V_UNTRACKED"] and v["V_LATEST"] and v["V_STABLE"]):
        return Archetype.INCUBATION, "WARMING UP" if v["V_SYNCING"] else "INCUBATION"

    if v["V_LATEST"] and v["V_PRODUCING"] and v["V_STABLE"] and v["V_CONSISTENT"]:
        return Archetype.ELITE, "ELITE STATUS"

    return Archetype.ACTIVE, "ACTIVE"


def _pins(v: Dict[str, bool]) -> Tuple[Pin, Pin]:
    top = Pin(True, "Gap") if v["V_GHOST"] else Pin()

    if v["V_RESTART"]:
        bottom = Pin(True, "Restart")
    elif v["V_UPDATE"]:
        bottom = Pin(True, "Update")
    elif v["V_FROZEN_UPTIME"]:
        bottom = Pin(True, "Hung")
    elif v["V_STAGNANT"]:
        bottom = Pin(True, "Zero Yield")
    else:
        bottom = Pin()
    return top, bottom


def analyze_point(
    point: Snapshot,
    window: Sequence[Snapshot] = (),
    ref_24h: Optional[Snapshot] = None,
    ctx: Optional[ForensicContext] = None,
) -> PointAnalysis:
    """
    Archetype and issues for one sample. Inputs are only read; the returned
    issues are annotations. No reference sample means no 24h checks.
    """
    v = compute_vectors(point, window, ref_24h, ctx or ForensicContext())
    archetype, label = _archetype(v)
    active = [k for k, on in v.items() if on]
    issues = [Issue(k, *ISSUE_CATALOG[k]) for k in active if k in ISSUE_CATALOG]
    top, bottom = _pins(v)
    return PointAnalysis(
        timestamp=point.timestamp,
        archetype=archetype,
        label=label,
        vectors=active,
        issues=issues,
        top_pin=top,
        bottom_pin=bottom,
    )


def analyze_series(
    points: Sequence[Snapshot],
    ctx: Optional[ForensicContext] = None,
    window_size: int = WINDOW_SIZE,
) -> List[PointAnalysis]:
    """Annotate every point of an ascending series for the ribbon view."""
    pts = list(points)
    times = [p.timestamp for p in pts]
    out: List[PointAnalysis] = []
    for i, p in enumerate(pts):
        window = pts[max(0, i - window_size):i]
        ref = _nearest(times, pts, p.timestamp - DAY_S, p.timestamp, REFERENCE_TOLERANCE_S)
        out.append(analyze_point(p, window, ref, ctx))
    return out
