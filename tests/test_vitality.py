"""Tests for the live vitality waterfall."""

from fleet.models import LiveNode, VitalityStatus
from fleet.vitality import classify_vitality, count_restarts, is_frozen, is_ghosting, minutes_since

from tests.factories import HOUR, MINUTE, NOW, snap


def node(uptime, seen_min_ago=1.0):
    last_seen = None if seen_min_ago is None else NOW - seen_min_ago * MINUTE
    return LiveNode(pubkey="ABC", address="10.0.0.5:6000", uptime=uptime, last_seen=last_seen)


def steady_history(live_uptime, count=5, step_s=3000.0, health=100.0):
    """Samples whose uptime advances in lockstep with the clock."""
    out = []
    for k in range(count, 0, -1):
        ts = NOW - k * step_s
        out.append(snap(ts, uptime=live_uptime - (NOW - ts), health=health))
    return out


def resetting_history(resets):
    """Alternating 5000/100 uptimes every 30 minutes, `resets` drops in total."""
    out = []
    n = 2 * resets
    for i in range(n):
        ts = NOW - (n - i) * 1800.0
        out.append(snap(ts, uptime=5000.0 if i % 2 == 0 else 100.0))
    return out


class TestOffline:

    def test_long_silence_beats_everything(self):
        result = classify_vitality(node(uptime=100, seen_min_ago=200), [], now=NOW)
        assert result.status is VitalityStatus.OFFLINE
        assert result.confidence == 100
        assert "200m" in result.reason

    def test_never_seen(self):
        result = classify_vitality(node(uptime=5000, seen_min_ago=None), now=NOW)
        assert result.status is VitalityStatus.OFFLINE
        assert "never seen" in result.reason

    def test_ghosting(self):
        history = steady_history(50000, count=6)
        history = [snap(s.timestamp, uptime=s.uptime, health=0.0) for s in history[:5]] + history[5:]
        result = classify_vitality(node(uptime=50000), history, now=NOW)
        assert result.status is VitalityStatus.OFFLINE
        assert result.reason.startswith("Ghosting")

    def test_ghosting_needs_more_than_five_samples(self):
        history = [snap(s.timestamp, uptime=s.uptime, health=0.0) for s in steady_history(50000, count=5)]
        result = classify_vitality(node(uptime=50000), history, now=NOW)
        assert result.status is VitalityStatus.ONLINE

    def test_is_ghosting_helper(self):
        quiet = [snap(NOW - k * 600, health=0.0) for k in range(1, 7)]
        assert is_ghosting(quiet, NOW)
        assert not is_ghosting(quiet[:5], NOW)
        assert not is_ghosting([], NOW)

    def test_failed_boot(self):
        result = classify_vitality(node(uptime=200, seen_min_ago=50), now=NOW)
        assert result.status is VitalityStatus.OFFLINE
        assert result.reason.startswith("Failed boot")


class TestStagnant:

    def test_frozen_uptime(self):
        history = [snap(NOW - 4000, uptime=5000)]
        result = classify_vitality(node(uptime=5030), history, now=NOW)
        assert result.status is VitalityStatus.STAGNANT
        assert result.confidence == 95

    def test_low_uptime_is_never_frozen(self):
        history = [snap(NOW - 4000, uptime=900)]
        result = classify_vitality(node(uptime=930), history, now=NOW)
        assert result.status is VitalityStatus.WARMUP

    def test_is_frozen_uses_newest_sample_older_than_an_hour(self):
        history = [snap(NOW - 3 * HOUR, uptime=5000), snap(NOW - 2 * HOUR, uptime=9000), snap(NOW - 60, uptime=9050)]
        assert is_frozen(9020, history, NOW)
        assert not is_frozen(5000, history, NOW)


class TestUnstable:

    def test_many_restarts(self):
        result = classify_vitality(node(uptime=2500), resetting_history(7), now=NOW)
        assert result.status is VitalityStatus.UNSTABLE
        assert result.reason == "High volatility: 7 restarts detected"
        assert result.confidence == 85

    def test_five_restarts_is_tolerated(self):
        result = classify_vitality(node(uptime=2500), resetting_history(5), now=NOW)
        assert result.status is VitalityStatus.ONLINE

    def test_late_heartbeat(self):
        result = classify_vitality(node(uptime=200, seen_min_ago=40), now=NOW)
        assert result.status is VitalityStatus.UNSTABLE
        assert result.reason.startswith("High latency")

    def test_reasons_tell_causes_apart(self):
        volatile = classify_vitality(node(uptime=2500), resetting_history(7), now=NOW)
        late = classify_vitality(node(uptime=50000, seen_min_ago=35), now=NOW)
        assert volatile.status is late.status is VitalityStatus.UNSTABLE
        assert volatile.reason != late.reason

    def test_old_restarts_fall_out_of_window(self):
        history = [snap(NOW - 30 * HOUR, uptime=9000), snap(NOW - 29 * HOUR, uptime=10)]
        assert count_restarts(history, NOW) == 0

    def test_small_drops_are_jitter(self):
        history = [snap(NOW - 2 * HOUR, uptime=9000), snap(NOW - HOUR, uptime=8950)]
        assert count_restarts(history, NOW) == 0


class TestWarmupAndOnline:

    def test_warmup_boundary(self):
        assert classify_vitality(node(uptime=1799), now=NOW).status is VitalityStatus.WARMUP
        assert classify_vitality(node(uptime=1800), now=NOW).status is VitalityStatus.ONLINE

    def test_warmup_label(self):
        result = classify_vitality(node(uptime=600), now=NOW)
        assert result.label == "WARMING UP"
        assert result.reason == "Node restarted 10m ago. Stabilizing."

    def test_warmup_minutes_round_half_up(self):
        assert classify_vitality(node(uptime=150), now=NOW).reason == "Node restarted 3m ago. Stabilizing."
        assert classify_vitality(node(uptime=89), now=NOW).reason == "Node restarted 1m ago. Stabilizing."

    def test_empty_history_does_not_raise(self):
        result = classify_vitality(node(uptime=10000), (), now=NOW)
        assert result.status is VitalityStatus.ONLINE
        assert result.confidence == 100

    def test_steady_history_is_online(self):
        result = classify_vitality(node(uptime=50000), steady_history(50000), now=NOW)
        assert result.status is VitalityStatus.ONLINE


def test_minutes_since():
    assert minutes_since(None, NOW) == float("inf")
    assert minutes_since(NOW - 90, NOW) == 1.5
    assert minutes_since(NOW + 60, NOW) == 0.0
