"""
Tests for the subscriber registry and the per-stream Subscriber handle.
"""
import asyncio

import pytest

from vault.core.errors import DeliveryFailure
from vault.services.subscriber_registry import Subscriber, SubscriberRegistry


def test_register_and_unregister_are_idempotent(make_subscriber):
    registry = SubscriberRegistry()
    subscriber = make_subscriber()

    registry.register(subscriber)
    registry.register(subscriber)
    assert len(registry) == 1
    assert subscriber in registry

    registry.unregister(subscriber)
    registry.unregister(subscriber)
    assert len(registry) == 0


def test_for_each_tolerates_unregister_during_iteration(make_subscriber):
    registry = SubscriberRegistry()
    subscribers = [make_subscriber(f"s{i}") for i in range(5)]
    for s in subscribers:
        registry.register(s)

    visited = []

    def visit(subscriber):
        visited.append(subscriber)
        registry.unregister(subscriber)

    registry.for_each(visit)

    assert sorted(s.subscriber_id for s in visited) == [f"s{i}" for i in range(5)]
    assert len(registry) == 0


def test_subscriber_delivers_in_order():
    async def scenario():
        subscriber = Subscriber(asyncio.get_running_loop(), max_pending=10)
        subscriber.deliver("data: 1\n\n")
        subscriber.deliver("data: 2\n\n")
        return [await subscriber.next_frame(), await subscriber.next_frame()]

    assert asyncio.run(scenario()) == ["data: 1\n\n", "data: 2\n\n"]


def test_subscriber_overflow_raises_delivery_failure():
    async def scenario():
        subscriber = Subscriber(asyncio.get_running_loop(), max_pending=2)
        subscriber.deliver("a")
        subscriber.deliver("b")
        await asyncio.sleep(0)
        with pytest.raises(DeliveryFailure):
            subscriber.deliver("c")

    asyncio.run(scenario())


def test_backlog_counts_frames_the_loop_has_not_run_yet():
    loop = asyncio.new_event_loop()
    try:
        subscriber = Subscriber(loop, max_pending=5)

        # The loop never runs between calls, so nothing reaches the queue yet
        for i in range(5):
            subscriber.deliver(f"data: {i}\n\n")
        for _ in range(20):
            with pytest.raises(DeliveryFailure):
                subscriber.deliver("data: extra\n\n")
        assert subscriber.pending == 5

        assert loop.run_until_complete(subscriber.next_frame()) == "data: 0\n\n"
        assert subscriber.pending == 4

        subscriber.deliver("data: 5\n\n")
        assert subscriber.pending == 5

        frames = [loop.run_until_complete(subscriber.next_frame()) for _ in range(5)]
        assert frames == [f"data: {i}\n\n" for i in range(1, 6)]
        assert subscriber.pending == 0
    finally:
        loop.close()


def test_close_wakes_reader_and_blocks_delivery():
    async def scenario():
        subscriber = Subscriber(asyncio.get_running_loop())
        reader = asyncio.create_task(subscriber.next_frame())
        await asyncio.sleep(0)

        subscriber.close()
        subscriber.close()

        assert await asyncio.wait_for(reader, timeout=1) is None
        with pytest.raises(DeliveryFailure):
            subscriber.deliver("late")

    asyncio.run(scenario())


def test_deliver_after_loop_closed():
    loop = asyncio.new_event_loop()
    subscriber = Subscriber(loop)
    loop.close()

    with pytest.raises(DeliveryFailure):
        subscriber.deliver("data: {}\n\n")
