# -*- coding: utf-8 -*-
# fleet/consolidate.py - history downsampling for display ranges

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .models import ConsolidatedPoint, Granularity, Snapshot, TimeRange

_AVG_FIELDS = ("health", "uptime", "storage_committed", "storage_used")
_OPTIONAL_AVG_FIELDS = ("credits", "rank")


def _mean(values: List[float]) -> float:
    return float(np.mean(np.asarray(values, dtype=float)))


def _mean_optional(values: List[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return _mean(present)


def bucket_points(samples: Sequence[Snapshot], bucket_s: float) -> List[ConsolidatedPoint]:
    """
    Group samples into fixed UTC buckets of `bucket_s` seconds and average
    every numeric field per bucket.

    Buckets come out in first-seen order, so ascending input gives
    ascending output. Empty buckets are not emitted.
    """
    if not samples:
        return []

    groups: Dict[float, List[Snapshot]] = {}
    for s in samples:
        key = float(np.floor(s.timestamp / bucket_s) * bucket_s)
        groups.setdefault(key, []).append(s)

    out: List[ConsolidatedPoint] = []
    for boundary, pts in groups.items():
        last = pts[-1]
        avg = {f: _mean([getattr(p, f) for p in pts]) for f in _AVG_FIELDS}
        avg.update({f: _mean_optional([getattr(p, f) for p in pts]) for f in _OPTIONAL_AVG_FIELDS})
        out.append(
            ConsolidatedPoint(
                timestamp=boundary,
                network=last.network,
                version=last.version,
                node_id=last.node_id,
                sample_count=len(pts),
                **avg,
            )
        )
    return out


def consolidate_history(
    samples: Sequence[Snapshot],
    time_range: Union[TimeRange, str],
    granularity: Union[Granularity, str, None] = None,
) -> List[Snapshot]:
    """
    Reduce `samples` to the resolution the range calls for.

    24H/3D/7D keep raw rows (a new list holding the same objects);
    30D/ALL collapse to one averaged point per calendar day. The decision
    is made from the range only, never from the data. A caller may force
    a granularity, e.g. HOURLY for a dense week.
    """
    tr = TimeRange.parse(time_range)
    g = Granularity(granularity) if granularity is not None else tr.granularity

    if g.bucket_s is None:
        return list(samples)
    return list(bucket_points(samples, g.bucket_s))
