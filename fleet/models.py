# -*- coding: utf-8 -*-
# fleet/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

DAY_S = 86400.0
HOUR_S = 3600.0


# ---------------------------------------------------------------------
# Ranges / granularity
# ---------------------------------------------------------------------

class Granularity(str, Enum):
    RAW = "raw"
    HOURLY = "hourly"
    DAILY = "daily"

    @property
    def bucket_s(self) -> Optional[float]:
        if self is Granularity.HOURLY:
            return HOUR_S
        if self is Granularity.DAILY:
            return DAY_S
        return None


class TimeRange(str, Enum):
    """Lookback windows the dashboard can ask for."""

    H24 = "24H"
    D3 = "3D"
    D7 = "7D"
    D30 = "30D"
    ALL = "ALL"

    @property
    def days(self) -> int:
        return _RANGE_DAYS[self]

    @property
    def lookback_s(self) -> float:
        return self.days * DAY_S

    @property
    def granularity(self) -> Granularity:
        # <= 7 days keeps raw rows, >= 30 days collapses to one point per day
        return Granularity.RAW if self.days <= 7 else Granularity.DAILY

    @classmethod
    def parse(cls, value: Any) -> "TimeRange":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().upper()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(
            "Unknown time range {!r}. Must be one of: {}".format(value, ", ".join(m.value for m in cls))
        )


_RANGE_DAYS = {
    TimeRange.H24: 1,
    TimeRange.D3: 3,
    TimeRange.D7: 7,
    TimeRange.D30: 30,
    TimeRange.ALL: 365,
}


# ---------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------

def _opt_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Snapshot:
    """
    One periodic observation of a node.

    timestamp is epoch seconds (UTC). health == 0 means "no signal",
    not a literal score of zero. credits is None while the rewards
    subsystem does not track the node.
    """
    timestamp: float
    health: float = 0.0
    uptime: float = 0.0
    storage_committed: float = 0.0
    storage_used: float = 0.0
    credits: Optional[float] = None
    rank: Optional[float] = None
    network: str = "MAINNET"
    version: Optional[str] = None
    node_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Snapshot":
        return cls(
            timestamp=float(row["created_at"]),
            health=_opt_float(row.get("health")) or 0.0,
            uptime=_opt_float(row.get("uptime")) or 0.0,
            storage_committed=_opt_float(row.get("storage_committed")) or 0.0,
            storage_used=_opt_float(row.get("storage_used")) or 0.0,
            credits=_opt_float(row.get("credits")),
            rank=_opt_float(row.get("rank")),
            network=str(row.get("network") or "MAINNET"),
            version=row.get("version"),
            node_id=row.get("node_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ConsolidatedPoint(Snapshot):
    """A bucket of snapshots; timestamp is the bucket boundary."""
    sample_count: int = 1


@dataclass(frozen=True)
class LiveNode:
    """The current record of a node as the fleet reports it right now."""
    pubkey: str
    address: Optional[str] = None
    network: str = "MAINNET"
    uptime: float = 0.0
    last_seen: Optional[float] = None
    health: float = 0.0
    storage_committed: Optional[float] = None
    version: Optional[str] = None
    is_public: Optional[bool] = None


# ---------------------------------------------------------------------
# Vitality (live status)
# ---------------------------------------------------------------------

class VitalityStatus(str, Enum):
    OFFLINE = "OFFLINE"
    STAGNANT = "STAGNANT"
    UNSTABLE = "UNSTABLE"
    WARMUP = "WARMUP"
    ONLINE = "ONLINE"


@dataclass(frozen=True)
class VitalityResult:
    status: VitalityStatus
    label: str
    reason: str
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "label": self.label,
            "reason": self.reason,
            "confidence": self.confidence,
        }


# ---------------------------------------------------------------------
# Point forensics (historical samples)
# ---------------------------------------------------------------------

class Archetype(str, Enum):
    CRITICAL = "CRITICAL"
    TRAUMA = "TRAUMA"
    DRIFT = "DRIFT"
    INCUBATION = "INCUBATION"
    ELITE = "ELITE"
    ACTIVE = "ACTIVE"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Issue:
    code: str
    severity: Severity
    title: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
        }


@dataclass(frozen=True)
class Pin:
    show: bool = False
    label: Optional[str] = None


ALL_CLEAR = "All systems operational"


@dataclass(frozen=True)
class PointAnalysis:
    timestamp: float
    archetype: Archetype
    label: str
    vectors: List[str] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    top_pin: Pin = Pin()
    bottom_pin: Pin = Pin()

    @property
    def is_nominal(self) -> bool:
        return not self.issues

    @property
    def headline(self) -> str:
        if not self.issues:
            return ALL_CLEAR
        worst = min(self.issues, key=lambda i: _SEVERITY_ORDER[i.severity])
        return worst.title

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "archetype": self.archetype.value,
            "label": self.label,
            "headline": self.headline,
            "vectors": list(self.vectors),
            "issues": [i.to_dict() for i in self.issues],
            "top_pin": asdict(self.top_pin),
            "bottom_pin": asdict(self.bottom_pin),
        }


_SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


# ---------------------------------------------------------------------
# Session continuity
# ---------------------------------------------------------------------

class ContinuityLabel(str, Enum):
    SEAMLESS = "Seamless"
    OPERATIONAL = "Operational"
    VOLATILE = "Volatile"
    REBOOTING = "Rebooting"
    INITIALIZING = "Initializing"
    SUSPENDED = "Suspended"
    UNVERIFIED = "Unverified"


@dataclass(frozen=True)
class ContinuityReport:
    label: ContinuityLabel
    detail: str
    reset_count: int = 0
    last_reset_at: Optional[float] = None
    frozen_since: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label.value,
            "detail": self.detail,
            "reset_count": self.reset_count,
            "last_reset_at": self.last_reset_at,
            "frozen_since": self.frozen_since,
        }
