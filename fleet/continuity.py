# -*- coding: utf-8 -*-
# fleet/continuity.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from .models import ContinuityLabel, ContinuityReport, Snapshot, VitalityStatus

# A drop smaller than this is clock jitter between collectors, not a reset.
RESET_TOLERANCE_S = 600.0
VOLATILE_AFTER = 4


def detect_resets(
    history: Sequence[Snapshot],
    tolerance_s: float = RESET_TOLERANCE_S,
) -> Tuple[int, Optional[float]]:
    """
    Walk the window pairwise and count uptime resets.

    Returns (reset_count, timestamp of the most recent reset or None).
    """
    pts: List[Snapshot] = sorted(history, key=lambda s: s.timestamp)
    count = 0
    last_at: Optional[float] = None
    for prev, curr in zip(pts, pts[1:]):
        if curr.uptime < prev.uptime - tolerance_s:
            count += 1
            last_at = curr.timestamp
    return count, last_at


def frozen_since(history: Sequence[Snapshot], live_uptime: float) -> Optional[float]:
    """Earliest sample whose uptime equals the live value: when the counter stopped."""
    matches = [s.timestamp for s in history if s.uptime == live_uptime]
    return min(matches) if matches else None


def _fmt_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def analyze_continuity(
    history: Sequence[Snapshot],
    status: VitalityStatus,
    live_uptime: float = 0.0,
    tolerance_s: float = RESET_TOLERANCE_S,
) -> ContinuityReport:
    """
    Qualitative session stability over a trailing (~30 day) window,
    combined with the node's live vitality status.
    """
    resets, last_reset = detect_resets(history, tolerance_s)

    if status is VitalityStatus.STAGNANT:
        since = frozen_since(history, live_uptime)
        detail = f"Frozen since {_fmt_ts(since)}" if since is not None else "Uptime counter frozen"
        return ContinuityReport(ContinuityLabel.SUSPENDED, detail, resets, last_reset, since)

    if status is VitalityStatus.WARMUP:
        if resets == 0:
            return ContinuityReport(ContinuityLabel.INITIALIZING, "System stabilizing", 0, None)
        return ContinuityReport(ContinuityLabel.REBOOTING, f"Recovering (Resets: {resets})", resets, last_reset)

    if status is VitalityStatus.ONLINE:
        if resets == 0:
            return ContinuityReport(ContinuityLabel.SEAMLESS, "No interruptions (30d)", 0, None)
        if resets <= VOLATILE_AFTER:
            return ContinuityReport(
                ContinuityLabel.OPERATIONAL, f"Minor resets detected ({resets})", resets, last_reset
            )
        return ContinuityReport(ContinuityLabel.VOLATILE, f"High frequency ({resets})", resets, last_reset)

    return ContinuityReport(ContinuityLabel.UNVERIFIED, "Signal lost", resets, last_reset)
