"""Tests for the in-process change bus."""

from shared.messaging import ChangeBus, ChangeBusRegistry


class TestChangeBus:
    def test_subscriber_sees_every_publish_until_unsubscribed(self):
        bus = ChangeBus("settings")
        received = []
        unsubscribe = bus.subscribe(received.append)

        bus.publish("first")
        bus.publish("second")
        unsubscribe()
        bus.publish("third")

        assert received == ["first", "second"]

    def test_publish_returns_delivered_count(self):
        bus = ChangeBus()
        bus.subscribe(lambda value: None)
        bus.subscribe(lambda value: None)

        assert bus.publish(1) == 2

    def test_failing_listener_does_not_stop_the_others(self):
        bus = ChangeBus()
        received = []

        def broken(value):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        assert bus.publish("value") == 1
        assert received == ["value"]

    def test_same_callable_registered_twice(self):
        bus = ChangeBus()
        received = []
        first = bus.subscribe(received.append)
        bus.subscribe(received.append)

        bus.publish("a")
        first()
        bus.publish("b")

        assert received == ["a", "a", "b"]
        assert len(bus) == 1

    def test_unsubscribe_is_idempotent(self):
        bus = ChangeBus()
        unsubscribe = bus.subscribe(lambda value: None)
        unsubscribe()
        unsubscribe()

        assert len(bus) == 0

    def test_clear(self):
        bus = ChangeBus()
        bus.subscribe(lambda value: None)
        bus.clear()

        assert bus.publish("x") == 0


class TestChangeBusRegistry:
    def test_same_topic_and_namespace_share_a_bus(self):
        registry = ChangeBusRegistry()

        assert registry.get("staff", "t1") is registry.get("staff", "t1")

    def test_namespaces_are_isolated(self):
        registry = ChangeBusRegistry()
        received = []
        registry.get("staff", "t1").subscribe(received.append)

        registry.get("staff", "t2").publish("other tenant")
        registry.get("staff").publish("legacy")

        assert received == []

    def test_drop_namespace(self):
        registry = ChangeBusRegistry()
        bus = registry.get("staff", "t1")
        bus.subscribe(lambda value: None)
        registry.get("themes", "t1")
        registry.get("staff", "t2")

        assert registry.drop_namespace("t1") == 2
        assert len(bus) == 0
        assert registry.get("staff", "t1") is not bus
