import asyncio

import pytest

from quiz_engine.timer import AttemptTimer


class Recorder:
    def __init__(self):
        self.expired = 0
        self.warnings = []

    def on_expire(self):
        self.expired += 1

    def on_warning(self, minutes):
        self.warnings.append(minutes)


def _timer(limit, rec, clock=None, **kw):
    return AttemptTimer(limit, on_expire=rec.on_expire, on_warning=rec.on_warning, clock=clock, **kw)


def test_expires_once_after_limit_ticks():
    rec = Recorder()
    timer = _timer(60, rec)
    for _ in range(59):
        timer.tick()
    assert rec.expired == 0
    assert timer.remaining_seconds == 1
    timer.tick()
    assert rec.expired == 1
    assert timer.expired is True
    for _ in range(5):
        timer.tick()
    assert rec.expired == 1
    assert timer.remaining_seconds == 0


def test_warnings_fire_once_in_descending_order():
    rec = Recorder()
    timer = _timer(15 * 60, rec)
    for _ in range(15 * 60):
        timer.tick()
    assert rec.warnings == [10, 5, 2, 1]
    assert rec.expired == 1


def test_threshold_at_or_above_limit_never_fires():
    rec = Recorder()
    timer = _timer(60, rec)
    for _ in range(60):
        timer.tick()
    # the 1-minute threshold is where the countdown starts, not a crossing
    assert rec.warnings == []


def test_large_tick_crosses_several_thresholds():
    rec = Recorder()
    timer = _timer(11 * 60, rec)
    timer.tick(10 * 60 + 30)
    assert rec.warnings == [10, 5, 2, 1]
    assert rec.expired == 0
    timer.tick(30)
    assert rec.expired == 1


def test_pause_freezes_countdown_and_warnings(clock):
    rec = Recorder()
    timer = _timer(130, rec, clock=clock)
    timer.tick(5)
    timer.pause()
    assert timer.paused_at == clock.now()
    for _ in range(200):
        timer.tick()
    assert timer.remaining_seconds == 125
    assert rec.warnings == []
    timer.sync_remaining(0)
    assert rec.expired == 0
    clock.advance(40)
    timer.resume()
    assert timer.paused_seconds == 40
    assert timer.paused_at is None
    timer.tick(5)
    assert timer.remaining_seconds == 120
    assert rec.warnings == [2]


def test_sync_only_moves_down():
    rec = Recorder()
    timer = _timer(600, rec)
    timer.sync_remaining(900)
    assert timer.remaining_seconds == 600
    timer.sync_remaining(50)
    assert timer.remaining_seconds == 50
    assert rec.warnings == [5, 2, 1]
    timer.sync_remaining(-3)
    assert rec.expired == 1


def test_stop_prevents_expiry():
    rec = Recorder()
    timer = _timer(2, rec)
    timer.stop()
    timer.tick(5)
    assert rec.expired == 0
    assert timer.remaining_seconds == 2


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        AttemptTimer(0, on_expire=lambda: None)


def test_run_ticks_until_expired():
    rec = Recorder()
    timer = _timer(3, rec)
    asyncio.run(asyncio.wait_for(timer.run(interval=0), timeout=5))
    assert rec.expired == 1
    assert timer.remaining_seconds == 0
