"""Tests for the fetch -> consolidate -> classify -> annotate pipeline."""

import asyncio

from fleet.history import HistoryFetcher
from fleet.models import ContinuityLabel, Granularity, LiveNode, TimeRange, VitalityStatus
from fleet.pipeline import build_report, inspect_node, inspect_node_sync, node_identity, query_since
from fleet.storage import StorageError

from tests.factories import DAY, HOUR, MIDNIGHT, MINUTE, NOW, snap

LIVE_UPTIME = 10000000.0
NODE = LiveNode(pubkey="ABC", address="10.0.0.5:6000", uptime=LIVE_UPTIME, last_seen=NOW - MINUTE)


def forty_days():
    """Samples at 01:00 and 09:00 UTC on each of the last 40 days, uptime never reset."""
    out = []
    for d in range(39, -1, -1):
        for h in (1, 9):
            ts = MIDNIGHT - d * DAY + h * HOUR
            out.append(snap(ts, uptime=LIVE_UPTIME - (NOW - ts), credits=1000.0 + ts / HOUR, version="1.2.0"))
    return out


class BrokenStore:
    def fetch_history(self, node_id, since=None, network=None):
        raise StorageError("database disk image is malformed")


class TestBuildReport:

    def test_all_range_has_one_point_per_day(self):
        report = build_report(NODE, forty_days(), TimeRange.ALL, now=NOW)
        assert len(report.points) == 40
        assert all(p.sample_count == 2 for p in report.points)
        assert len(report.annotations) == len(report.points)
        assert report.raw_count == 80

    def test_24h_range_keeps_trailing_raw_rows(self):
        report = build_report(NODE, forty_days(), "24H", now=NOW)
        assert [p.timestamp for p in report.points] == [MIDNIGHT + HOUR, MIDNIGHT + 9 * HOUR]
        assert not hasattr(report.points[0], "sample_count")

    def test_24h_range_is_a_trailing_window_not_a_calendar_day(self):
        history = [
            snap(MIDNIGHT - 13 * HOUR, uptime=LIVE_UPTIME - 25 * HOUR),
            snap(MIDNIGHT - 11 * HOUR, uptime=LIVE_UPTIME - 23 * HOUR),
            snap(MIDNIGHT + HOUR, uptime=LIVE_UPTIME - 11 * HOUR),
        ]
        report = build_report(NODE, history, "24H", now=NOW)
        assert [p.timestamp - MIDNIGHT for p in report.points] == [-11 * HOUR, HOUR]
        assert report.raw_count == 2

    def test_vitality_and_continuity_use_raw_history(self):
        report = build_report(NODE, forty_days(), TimeRange.ALL, now=NOW)
        assert report.vitality.status is VitalityStatus.ONLINE
        assert report.continuity.label is ContinuityLabel.SEAMLESS

    def test_empty_history(self):
        report = build_report(NODE, [], "7D", now=NOW)
        assert report.points == []
        assert report.annotations == []
        assert report.vitality.status is VitalityStatus.ONLINE
        assert report.node_id == "ABC-10.0.0.5-MAINNET"

    def test_to_dict(self):
        d = build_report(NODE, forty_days(), "30D", now=NOW).to_dict()
        assert d["range"] == "30D"
        assert d["granularity"] == Granularity.DAILY.value
        assert d["vitality"]["status"] == "ONLINE"
        assert d["error"] is None


class TestIdentityAndWindow:

    def test_capacity_sensitive_identity(self):
        node = LiveNode(pubkey="ABC", address="10.0.0.5:6000", storage_committed=1000.0)
        assert node_identity(node) == "ABC-10.0.0.5-MAINNET"
        assert node_identity(node, capacity_sensitive=True) == "ABC-10.0.0.5-MAINNET-1000"

    def test_flagged_address_is_private(self):
        flagged = LiveNode(pubkey="ABC", address="203.0.113.7:6000", is_public=False)
        assert node_identity(flagged) == "ABC-private-MAINNET"
        assert node_identity(LiveNode(pubkey="ABC", address="203.0.113.7:6000", is_public=True)) == "ABC-203.0.113.7-MAINNET"
        assert node_identity(LiveNode(pubkey="ABC", address="203.0.113.7:6000")) == "ABC-203.0.113.7-MAINNET"

    def test_query_covers_continuity_window(self):
        assert query_since("24H", NOW) == NOW - 30 * DAY
        assert query_since("ALL", NOW) == NOW - 365 * DAY


class TestInspect:

    def test_async_failure_degrades(self):
        report = asyncio.run(inspect_node(HistoryFetcher(BrokenStore()), NODE, "7D", now=NOW))
        assert report.error and "malformed" in report.error
        assert report.points == []
        assert report.vitality.status is VitalityStatus.ONLINE

    def test_sync_reads_store(self, storage):
        for s in forty_days()[-6:]:
            storage.insert_snapshot(
                "ABC-10.0.0.5-MAINNET", health=s.health, uptime=s.uptime, credits=s.credits, created_at=s.timestamp
            )
        report = inspect_node_sync(storage, NODE, "3D", now=NOW)
        assert report.error is None
        assert report.raw_count == 6
        assert [p.timestamp for p in report.points] == [s.timestamp for s in forty_days()[-6:]]

    def test_sync_flagged_node_reads_private_history(self, storage):
        storage.insert_snapshot("ABC-private-MAINNET", health=100.0, uptime=LIVE_UPTIME - HOUR, created_at=NOW - HOUR)
        storage.insert_snapshot("ABC-203.0.113.7-MAINNET", health=100.0, uptime=5.0, created_at=NOW - HOUR)
        flagged = LiveNode(
            pubkey="ABC", address="203.0.113.7:6000", uptime=LIVE_UPTIME, last_seen=NOW - MINUTE, is_public=False
        )
        report = inspect_node_sync(storage, flagged, "24H", now=NOW)
        assert report.node_id == "ABC-private-MAINNET"
        assert [p.uptime for p in report.points] == [LIVE_UPTIME - HOUR]

    def test_sync_failure_degrades(self, storage, monkeypatch):
        def broken(*a, **kw):
            raise StorageError("locked")

        monkeypatch.setattr(storage, "fetch_history", broken)
        report = inspect_node_sync(storage, NODE, "7D", now=NOW)
        assert "locked" in report.error
        assert report.continuity.label is ContinuityLabel.SEAMLESS
