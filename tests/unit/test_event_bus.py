"""
Unit tests for EventBus.

Wildcard routing, listener priorities and error isolation for the
cultivation.* events.
"""

import asyncio

import pytest

from src.core.config.manager import ConfigManager
from src.core.event.bus import EventBus, matches
from src.core.event.types import ListenerPriority


@pytest.mark.unit
class TestMatches:
    @pytest.mark.parametrize(
        "name, pattern, expected",
        [
            ("cultivation.stones_found", "cultivation.*", True),
            ("cultivation.stones_found", "*", True),
            ("cultivation.stones_found", "cultivation.stones_found", True),
            ("cultivation.stones_found", "*.method_upgraded", False),
            ("cultivation.method_upgraded", "*.method_*", True),
        ],
    )
    def test_patterns(self, name, pattern, expected):
        assert matches(name, pattern) is expected


@pytest.mark.unit
@pytest.mark.asyncio
class TestPublish:
    async def test_exact_and_wildcard_listeners_receive(self):
        # Arrange
        bus = EventBus()
        received = []
        bus.subscribe("cultivation.stones_found", lambda p: received.append(("exact", p["amount"])))
        bus.subscribe("cultivation.*", lambda p: received.append(("wild", p["amount"])))

        # Act
        await bus.publish("cultivation.stones_found", {"amount": 3})

        # Assert
        assert sorted(received) == [("exact", 3), ("wild", 3)]

    async def test_failing_listener_is_isolated(self):
        bus = EventBus()
        received = []

        def broken(payload):
            raise RuntimeError("listener bug")

        bus.subscribe("cultivation.*", broken, priority=ListenerPriority.HIGH)
        bus.subscribe("cultivation.*", received.append)

        await bus.publish("cultivation.method_purchased", {"cost": 2500})

        assert received == [{"cost": 2500}]
        assert bus.get_metrics_summary()["errors_by_event"] == {"cultivation.method_purchased": 1}

    async def test_low_priority_runs_in_background(self):
        bus = EventBus()
        done = asyncio.Event()

        async def slow(payload):
            await asyncio.sleep(0)
            done.set()

        bus.subscribe("cultivation.meditation_started", slow, priority=ListenerPriority.LOW)

        results = await bus.publish("cultivation.meditation_started", {"user_id": "u-1"})
        await bus.shutdown()

        assert results == []
        assert done.is_set()

    async def test_once_listener_fires_once(self):
        bus = EventBus()
        received = []
        bus.subscribe("cultivation.*", received.append, once=True)

        await bus.publish("cultivation.stones_found", {"amount": 1})
        await bus.publish("cultivation.stones_found", {"amount": 2})

        assert received == [{"amount": 1}]

    async def test_listener_signature_checked(self):
        bus = EventBus()

        with pytest.raises(ValueError):
            bus.subscribe("cultivation.*", lambda a, b: None)


@pytest.mark.unit
@pytest.mark.asyncio
class TestListenerTimeouts:
    async def test_slow_high_listener_times_out(self):
        # Arrange
        bus = EventBus(high_timeout_seconds=0.01)
        received = []

        async def stuck(payload):
            await asyncio.sleep(1)

        bus.subscribe("cultivation.*", stuck, priority=ListenerPriority.HIGH)
        bus.subscribe("cultivation.*", received.append)

        # Act
        results = await bus.publish("cultivation.breakthrough_resolved", {"outcome": "success"})

        # Assert
        assert results[0] is None
        assert received == [{"outcome": "success"}]
        assert bus.get_metrics_summary()["total_errors"] == 1

    async def test_timeouts_read_from_config(self):
        ConfigManager.set_override("core.event.listener_timeout.critical_seconds", 0.01)
        bus = EventBus(ConfigManager)

        async def stuck(payload):
            await asyncio.sleep(1)

        bus.subscribe("cultivation.*", stuck, priority=ListenerPriority.CRITICAL)

        assert await bus.publish("cultivation.stones_found", {"amount": 1}) == [None]


@pytest.mark.unit
class TestSubscription:
    def test_duplicate_identifier_ignored(self):
        bus = EventBus()

        bus.subscribe("cultivation.*", print, identifier="printer")
        bus.subscribe("cultivation.*", print, identifier="printer")

        assert bus.get_listener_count("cultivation.stones_found") == 1
        assert bus.unsubscribe("cultivation.*", "printer") is True
        assert bus.get_listener_count() == 0
