"""
Tests for the debounce coalescer.
"""
import threading
import time
from pathlib import Path
from unittest.mock import Mock

from watch_uploader.debounce import Debouncer


def test_burst_for_one_path_fires_once_after_last_event(scheduler):
    """N events less than D apart collapse into one call, D after the last."""
    handler = Mock()
    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    path = Path("/watch/log.txt")

    for _ in range(5):
        debouncer.notify(path)
        scheduler.advance(0.9)

    handler.assert_not_called()
    assert scheduler.live_timers == 1

    # Last event was at t=3.6; nothing may fire before t=4.6.
    scheduler.advance(0.09)
    handler.assert_not_called()

    scheduler.advance(0.02)
    handler.assert_called_once_with(path)
    assert len(scheduler.fired_at) == 1
    assert abs(scheduler.fired_at[0][0] - 4.6) < 1e-9
    assert debouncer.cancel_all() == 0


def test_three_rapid_writes_produce_one_attempt(scheduler):
    handler = Mock()
    debouncer = Debouncer(0.2, handler, timer_factory=scheduler.call_later)
    path = Path("/watch/log.txt")

    debouncer.notify(path)
    scheduler.advance(0.05)
    debouncer.notify(path)
    scheduler.advance(0.05)
    debouncer.notify(path)
    scheduler.advance(1.0)

    handler.assert_called_once_with(path)
    assert abs(scheduler.fired_at[0][0] - 0.3) < 1e-9


def test_paths_have_independent_timers(scheduler):
    """Resetting path A never delays or cancels path B."""
    handler = Mock()
    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    path_a = Path("/watch/a.txt")
    path_b = Path("/watch/b.txt")

    debouncer.notify(path_a)
    debouncer.notify(path_b)
    scheduler.advance(0.5)
    debouncer.notify(path_a)

    scheduler.advance(0.6)
    handler.assert_called_once_with(path_b)

    scheduler.advance(0.5)
    assert handler.call_count == 2
    handler.assert_called_with(path_a)


def test_events_spaced_wider_than_window_fire_separately(scheduler):
    handler = Mock()
    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    path = Path("/watch/report.csv")

    debouncer.notify(path)
    scheduler.advance(1.5)
    debouncer.notify(path)
    scheduler.advance(1.5)

    assert handler.call_count == 2


def test_notify_during_handler_keeps_newer_entry(scheduler):
    """A notify that lands while the old callback runs is not lost."""
    path = Path("/watch/late.txt")
    calls = []

    def handler(p):
        calls.append(p)
        if len(calls) == 1:
            debouncer.notify(p)

    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    debouncer.notify(path)
    scheduler.advance(1.0)

    assert calls == [path]
    assert scheduler.live_timers == 1

    scheduler.advance(1.0)
    assert calls == [path, path]
    assert debouncer.cancel_all() == 0


def test_handler_error_still_clears_entry(scheduler):
    handler = Mock(side_effect=RuntimeError("boom"))
    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    path = Path("/watch/x.txt")

    debouncer.notify(path)
    try:
        scheduler.advance(1.0)
    except RuntimeError:
        pass

    assert debouncer.cancel_all() == 0


def test_cancel_all_drops_pending_timers(scheduler):
    handler = Mock()
    debouncer = Debouncer(1.0, handler, timer_factory=scheduler.call_later)
    debouncer.notify(Path("/watch/a.txt"))
    debouncer.notify(Path("/watch/b.txt"))

    assert debouncer.cancel_all() == 2
    scheduler.advance(5.0)

    handler.assert_not_called()
    assert scheduler.live_timers == 0


def test_refused_timer_leaves_nothing_pending():
    handler = Mock()
    debouncer = Debouncer(1.0, handler, timer_factory=lambda *args: None)

    debouncer.notify(Path("/watch/a.txt"))

    assert debouncer.cancel_all() == 0


def test_real_timers_coalesce_concurrent_notifies():
    """Many threads hammering one path still produce a single call."""
    fired = threading.Event()
    handler = Mock(side_effect=lambda p: fired.set())
    debouncer = Debouncer(0.2, handler)
    path = Path("/watch/busy.bin")

    threads = [threading.Thread(target=debouncer.notify, args=(path,)) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert fired.wait(2.0)
    time.sleep(0.3)
    handler.assert_called_once_with(path)
    assert debouncer.cancel_all() == 0
