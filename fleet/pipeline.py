# -*- coding: utf-8 -*-
# fleet/pipeline.py
"""
fetch -> consolidate -> classify -> annotate

Consolidation only feeds the display series and its ribbon annotations.
Live vitality and session continuity always look at raw rows.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .consolidate import consolidate_history
from .continuity import analyze_continuity
from .forensics import ForensicContext, analyze_series
from .history import HistoryFetcher, FetchError
from .identity import stable_id
from .models import (
    ContinuityReport,
    LiveNode,
    PointAnalysis,
    Snapshot,
    TimeRange,
    VitalityResult,
)
from .storage import Storage, StorageError
from .vitality import classify_vitality

log = logging.getLogger("fleetvital.pipeline")

# Continuity is judged over 30 days whatever the display range is.
CONTINUITY_RANGE = TimeRange.D30


@dataclass
class NodeReport:
    node_id: str
    time_range: TimeRange
    points: List[Snapshot]
    annotations: List[PointAnalysis]
    vitality: VitalityResult
    continuity: ContinuityReport
    raw_count: int = 0
    error: Optional[str] = None
    generated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "range": self.time_range.value,
            "granularity": self.time_range.granularity.value,
            "raw_count": self.raw_count,
            "points": [p.to_dict() for p in self.points],
            "annotations": [a.to_dict() for a in self.annotations],
            "vitality": self.vitality.to_dict(),
            "continuity": self.continuity.to_dict(),
            "error": self.error,
            "generated_at": self.generated_at,
        }


def node_identity(node: LiveNode, capacity_sensitive: bool = False) -> str:
    committed = node.storage_committed if capacity_sensitive else None
    # is_public=False is the fleet flagging the address as masked, whatever it looks like
    return stable_id(node.pubkey, node.address, node.network, committed=committed, masked=node.is_public is False)


def query_since(time_range: Union[TimeRange, str], now: float) -> float:
    """Earliest timestamp the report needs: display range or continuity window."""
    tr = TimeRange.parse(time_range)
    return now - max(tr.lookback_s, CONTINUITY_RANGE.lookback_s)


def build_report(
    node: LiveNode,
    history: Sequence[Snapshot],
    time_range: Union[TimeRange, str],
    now: Optional[float] = None,
    ctx: Optional[ForensicContext] = None,
    node_id: Optional[str] = None,
    error: Optional[str] = None,
) -> NodeReport:
    """Pure part of the pipeline. `history` is raw and ascending; may be empty."""
    now = time.time() if now is None else float(now)
    tr = TimeRange.parse(time_range)

    display_since = now - tr.lookback_s
    recent_since = now - CONTINUITY_RANGE.lookback_s
    display_raw = [s for s in history if s.timestamp >= display_since]
    recent_raw = [s for s in history if s.timestamp >= recent_since]

    points = consolidate_history(display_raw, tr)
    vitality = classify_vitality(node, recent_raw, now=now)
    continuity = analyze_continuity(recent_raw, vitality.status, live_uptime=node.uptime)
    annotations = analyze_series(points, ctx)

    return NodeReport(
        node_id=node_id or node_identity(node),
        time_range=tr,
        points=points,
        annotations=annotations,
        vitality=vitality,
        continuity=continuity,
        raw_count=len(display_raw),
        error=error,
        generated_at=now,
    )


async def inspect_node(
    fetcher: HistoryFetcher,
    node: LiveNode,
    time_range: Union[TimeRange, str],
    now: Optional[float] = None,
    ctx: Optional[ForensicContext] = None,
    capacity_sensitive: bool = False,
) -> NodeReport:
    now = time.time() if now is None else float(now)
    node_id = node_identity(node, capacity_sensitive)
    history: List[Snapshot] = []
    error = None
    try:
        history = await fetcher.fetch(node_id, query_since(time_range, now), node.network)
    except FetchError as e:
        log.warning("Inspecting %s without history: %s", node_id, e)
        error = str(e)
    return build_report(node, history, time_range, now=now, ctx=ctx, node_id=node_id, error=error)


def inspect_node_sync(
    storage: Storage,
    node: LiveNode,
    time_range: Union[TimeRange, str],
    now: Optional[float] = None,
    ctx: Optional[ForensicContext] = None,
    capacity_sensitive: bool = False,
) -> NodeReport:
    """Blocking variant for request handlers that are not async."""
    now = time.time() if now is None else float(now)
    node_id = node_identity(node, capacity_sensitive)
    history: List[Snapshot] = []
    error = None
    try:
        history = storage.fetch_history(node_id, query_since(time_range, now), node.network)
    except StorageError as e:
        log.warning("Inspecting %s without history: %s", node_id, e)
        error = str(FetchError(node_id, str(e)))
    return build_report(node, history, time_range, now=now, ctx=ctx, node_id=node_id, error=error)
