from unittest.mock import MagicMock

from libs.logging import ErrorLog
from libs.store import EventBus, Topic


def test_publish_in_subscription_order() -> None:
    bus = EventBus()
    calls = []
    bus.subscribe(Topic.SAVED, lambda p: calls.append(("a", p)))
    bus.subscribe("saved", lambda p: calls.append(("b", p)))
    bus.publish(Topic.SAVED, 1)
    assert calls == [("a", 1), ("b", 1)]


def test_duplicate_subscribe_is_noop() -> None:
    bus = EventBus()
    callback = MagicMock()
    bus.subscribe(Topic.PROMPT_ADDED, callback)
    bus.subscribe(Topic.PROMPT_ADDED, callback)
    bus.publish(Topic.PROMPT_ADDED, "x")
    callback.assert_called_once_with("x")


def test_unsubscribe_unknown_callback_is_noop() -> None:
    bus = EventBus()
    bus.unsubscribe("nothing", MagicMock())
    callback = MagicMock()
    bus.subscribe("t", callback)
    bus.unsubscribe("t", callback)
    bus.publish("t")
    callback.assert_not_called()


def test_failing_callback_is_isolated_and_logged() -> None:
    log = ErrorLog()
    bus = EventBus(log)
    after = MagicMock()
    bus.subscribe("t", MagicMock(side_effect=RuntimeError("boom")))
    bus.subscribe("t", after)
    bus.publish("t", 42)
    after.assert_called_once_with(42)
    assert log.get_errors()[0]["context"] == "Event callback for t"
    assert log.get_errors()[0]["message"] == "boom"


def test_callback_may_unsubscribe_during_publish() -> None:
    bus = EventBus()
    calls = []

    def once(payload):
        calls.append(payload)
        bus.unsubscribe("t", once)

    bus.subscribe("t", once)
    bus.publish("t", 1)
    bus.publish("t", 2)
    assert calls == [1]
    assert bus.subscribers("t") == []
