from guardbot.middleware import rate_limit
from guardbot.middleware.rate_limit import CooldownTracker

from fakes import FakeClock


def test_new_user_is_not_cooling():
    tracker = CooldownTracker(window_sec=8, clock=FakeClock())
    assert not tracker.is_cooling("user")
    assert tracker.remaining("user") == 0.0


def test_cooldown_window():
    clock = FakeClock()
    tracker = CooldownTracker(window_sec=8, clock=clock)
    tracker.touch("user")

    clock.advance(7.9)
    assert tracker.is_cooling("user")
    assert tracker.remaining("user") > 0

    clock.advance(0.1)
    assert not tracker.is_cooling("user")


def test_cooldown_is_per_user():
    tracker = CooldownTracker(window_sec=8, clock=FakeClock())
    tracker.touch("a")
    assert tracker.is_cooling("a")
    assert not tracker.is_cooling("b")


def test_explicit_timestamp_is_used():
    clock = FakeClock(100.0)
    tracker = CooldownTracker(window_sec=8, clock=clock)
    tracker.touch("user", now=95.0)
    assert not tracker.is_cooling("user", now=103.0)
    assert tracker.is_cooling("user", now=102.0)


def test_cleanup_drops_expired_entries():
    clock = FakeClock()
    tracker = CooldownTracker(window_sec=8, clock=clock)
    tracker.touch("old")
    clock.advance(rate_limit.CLEANUP_INTERVAL + 1)
    tracker.touch("new")
    assert "old" not in tracker._last_call
    assert "new" in tracker._last_call


def test_reset():
    tracker = CooldownTracker(window_sec=8, clock=FakeClock())
    tracker.touch("user")
    tracker.reset()
    assert not tracker.is_cooling("user")
