# -*- coding: utf-8 -*-
# fleet/display.py - enum -> presentation metadata

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Type

from .models import Archetype, ContinuityLabel, VitalityStatus


@dataclass(frozen=True)
class DisplayMeta:
    color: str        # hex, for the web ribbon
    style: str        # rich style, for the terminal monitor
    icon: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ARCHETYPE_DISPLAY: Dict[Archetype, DisplayMeta] = {
    Archetype.CRITICAL: DisplayMeta("#be123c", "bold red", "alert-triangle"),
    Archetype.TRAUMA: DisplayMeta("#7c3aed", "magenta", "zap"),
    Archetype.DRIFT: DisplayMeta("#d97706", "yellow", "activity"),
    Archetype.INCUBATION: DisplayMeta("#2563eb", "blue", "thermometer-sun"),
    Archetype.ELITE: DisplayMeta("#059669", "bold green", "check-circle"),
    Archetype.ACTIVE: DisplayMeta("#06b6d4", "cyan", "check-circle"),
}

STATUS_DISPLAY: Dict[VitalityStatus, DisplayMeta] = {
    VitalityStatus.OFFLINE: DisplayMeta("#71717a", "dim", "wifi-off"),
    VitalityStatus.STAGNANT: DisplayMeta("#eab308", "yellow", "activity"),
    VitalityStatus.UNSTABLE: DisplayMeta("#f97316", "dark_orange", "zap"),
    VitalityStatus.WARMUP: DisplayMeta("#60a5fa", "blue", "thermometer-sun"),
    VitalityStatus.ONLINE: DisplayMeta("#22c55e", "green", "wifi"),
}

CONTINUITY_DISPLAY: Dict[ContinuityLabel, DisplayMeta] = {
    ContinuityLabel.SEAMLESS: DisplayMeta("#22c55e", "green", "shield-check"),
    ContinuityLabel.OPERATIONAL: DisplayMeta("#06b6d4", "cyan", "refresh-cw"),
    ContinuityLabel.VOLATILE: DisplayMeta("#f97316", "dark_orange", "zap"),
    ContinuityLabel.REBOOTING: DisplayMeta("#60a5fa", "blue", "refresh-cw"),
    ContinuityLabel.INITIALIZING: DisplayMeta("#60a5fa", "blue", "thermometer-sun"),
    ContinuityLabel.SUSPENDED: DisplayMeta("#eab308", "yellow", "pause"),
    ContinuityLabel.UNVERIFIED: DisplayMeta("#71717a", "dim", "help-circle"),
}


def _check_total(table: Mapping[Any, DisplayMeta], enum_cls: Type[Enum]) -> None:
    missing = [m.value for m in enum_cls if m not in table]
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} display table is missing: {', '.join(missing)}")


_check_total(ARCHETYPE_DISPLAY, Archetype)
_check_total(STATUS_DISPLAY, VitalityStatus)
_check_total(CONTINUITY_DISPLAY, ContinuityLabel)
