import threading

from libs.store import ManualScheduler, ThreadingScheduler


def test_manual_call_later_fires_once_when_due() -> None:
    scheduler = ManualScheduler()
    calls = []
    scheduler.call_later(2, lambda: calls.append(scheduler.now))

    scheduler.advance(1)
    assert calls == []
    scheduler.advance(5)
    assert calls == [2]
    assert scheduler.now == 6
    assert scheduler.pending == 0


def test_manual_fires_in_due_order() -> None:
    scheduler = ManualScheduler()
    calls = []
    scheduler.call_later(3, lambda: calls.append("late"))
    scheduler.call_later(1, lambda: calls.append("early"))
    scheduler.call_later(1, lambda: calls.append("early-second"))
    scheduler.advance(3)
    assert calls == ["early", "early-second", "late"]


def test_manual_call_every_repeats_until_cancelled() -> None:
    scheduler = ManualScheduler()
    calls = []
    handle = scheduler.call_every(10, lambda: calls.append(scheduler.now))

    scheduler.advance(35)
    assert calls == [10, 20, 30]

    handle.cancel()
    assert handle.cancelled
    scheduler.advance(100)
    assert calls == [10, 20, 30]


def test_manual_callback_can_schedule_more_work() -> None:
    scheduler = ManualScheduler()
    calls = []
    scheduler.call_later(1, lambda: scheduler.call_later(1, lambda: calls.append(scheduler.now)))
    scheduler.advance(5)
    assert calls == [2]


def test_threading_call_later_and_cancel() -> None:
    scheduler = ThreadingScheduler()
    fired = threading.Event()
    handle = scheduler.call_later(0.01, fired.set)
    assert fired.wait(2)
    assert not handle.cancelled

    never = threading.Event()
    cancelled = scheduler.call_later(0.5, never.set)
    cancelled.cancel()
    assert cancelled.cancelled
    assert not never.wait(0.7)


def test_threading_call_every() -> None:
    scheduler = ThreadingScheduler()
    ticks = []
    done = threading.Event()

    def tick():
        ticks.append(1)
        if len(ticks) >= 3:
            done.set()

    handle = scheduler.call_every(0.01, tick)
    assert done.wait(2)
    handle.cancel()
    assert handle.cancelled
