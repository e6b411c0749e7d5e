import asyncio
from datetime import datetime, timezone as dt_timezone

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from messaging.realtime.subscriptions import SubscriptionManager
from messaging.services.feed import message_group
from messaging.types import FeedEvent, Message


class FakeFeed:
    def __init__(self, viewer_id, on_event, on_disconnect):
        self.viewer_id = viewer_id
        self.on_event = on_event
        self.on_disconnect = on_disconnect
        self.started = 0
        self.closed = 0

    def start(self):
        self.started += 1

    def close(self):
        self.closed += 1


class FeedFactory:
    def __init__(self):
        self.feeds = []

    def __call__(self, viewer_id, on_event, on_disconnect):
        feed = FakeFeed(viewer_id, on_event, on_disconnect)
        self.feeds.append(feed)
        return feed


def _event(id=1):
    msg = Message(id=id, sender_id=1, receiver_id=2, content="Hello",
                  created_at=datetime(2024, 5, 1, tzinfo=dt_timezone.utc), is_read=False, channel="staff")
    return FeedEvent("message.inserted", msg)


def test_one_connection_per_viewer_and_single_teardown():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)

    unsub_a = manager.subscribe(1, lambda e: None)
    unsub_b = manager.subscribe(1, lambda e: None)
    manager.subscribe(2, lambda e: None)

    assert [f.viewer_id for f in factory.feeds] == [1, 2]
    assert manager.subscriber_count(1) == 2

    unsub_a()
    assert factory.feeds[0].closed == 0
    unsub_b()
    unsub_b()
    unsub_a()
    assert factory.feeds[0].closed == 1
    assert manager.connection_for(1) is None

    manager.subscribe(1, lambda e: None)
    assert len(factory.feeds) == 3
    assert factory.feeds[2].viewer_id == 1


def test_events_fan_out_to_every_callback():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)
    seen_a, seen_b = [], []
    manager.subscribe(1, seen_a.append)
    unsub_b = manager.subscribe(1, seen_b.append)

    factory.feeds[0].on_event(_event(1))
    unsub_b()
    factory.feeds[0].on_event(_event(2))

    assert [e.message.id for e in seen_a] == [1, 2]
    assert [e.message.id for e in seen_b] == [1]


def test_failing_callback_does_not_starve_others():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)
    seen = []

    def broken(event):
        raise RuntimeError("render failed")

    manager.subscribe(1, broken)
    manager.subscribe(1, seen.append)
    factory.feeds[0].on_event(_event())

    assert len(seen) == 1


def test_drop_reopens_exactly_one_connection():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)
    seen = []
    manager.subscribe(1, seen.append)
    first = factory.feeds[0]

    first.on_disconnect()
    first.on_disconnect()

    assert len(factory.feeds) == 2
    second = factory.feeds[1]
    assert manager.connection_for(1) is second
    second.on_event(_event())
    assert len(seen) == 1


def test_drop_after_last_unsubscribe_does_not_reopen():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)
    unsub = manager.subscribe(1, lambda e: None)
    feed = factory.feeds[0]
    unsub()

    feed.on_disconnect()

    assert len(factory.feeds) == 1


def test_delayed_reopen_runs_on_the_loop():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0.01)

    async def scenario():
        manager.subscribe(1, lambda e: None)
        factory.feeds[0].on_disconnect()
        assert len(factory.feeds) == 1
        await asyncio.sleep(0.05)

    async_to_sync(scenario)()
    assert len(factory.feeds) == 2


def test_stream_yields_events_and_unsubscribes_on_close():
    factory = FeedFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)

    async def scenario():
        stream = manager.stream(1)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        factory.feeds[0].on_event(_event(5))
        got = await pending
        await stream.aclose()
        return got

    got = async_to_sync(scenario)()

    assert got.message.id == 5
    assert manager.subscriber_count(1) == 0
    assert factory.feeds[0].closed == 1


def test_channel_layer_feed_delivers_group_events():
    layer = get_channel_layer()
    manager = SubscriptionManager(resubscribe_delay=0)
    seen = []

    async def scenario():
        unsubscribe = manager.subscribe(2, seen.append)
        await manager.wait_ready(2)
        await layer.group_send(message_group(2), _event(9).to_layer())
        for _ in range(100):
            if seen:
                break
            await asyncio.sleep(0.01)
        unsubscribe()
        await asyncio.sleep(0.01)

    async_to_sync(scenario)()

    assert [e.message.id for e in seen] == [9]
    assert manager.connection_for(2) is None


class LateReadyFeed(FakeFeed):
    """Joins its group on the next loop turn, or drops there if ``drop``."""

    def __init__(self, viewer_id, on_event, on_disconnect, drop=False):
        super().__init__(viewer_id, on_event, on_disconnect)
        self.ready = asyncio.Event()
        self.drop = drop

    def start(self):
        super().start()
        loop = asyncio.get_running_loop()
        loop.call_soon(self.on_disconnect if self.drop else self.ready.set)


class FirstDropsFactory(FeedFactory):
    def __call__(self, viewer_id, on_event, on_disconnect):
        feed = LateReadyFeed(viewer_id, on_event, on_disconnect, drop=not self.feeds)
        self.feeds.append(feed)
        return feed


def test_wait_ready_follows_a_connection_that_drops_before_joining():
    factory = FirstDropsFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=0)

    async def scenario():
        manager.subscribe(1, lambda e: None)
        await asyncio.wait_for(manager.wait_ready(1), 1.0)

    async_to_sync(scenario)()

    assert len(factory.feeds) == 2
    assert manager.connection_for(1) is factory.feeds[1]
    assert factory.feeds[1].ready.is_set()


def test_wait_ready_returns_while_reopen_is_pending():
    factory = FirstDropsFactory()
    manager = SubscriptionManager(factory, resubscribe_delay=30)

    async def scenario():
        manager.subscribe(1, lambda e: None)
        await asyncio.wait_for(manager.wait_ready(1), 1.0)
        current = manager.connection_for(1)
        manager.close_all()
        return current

    assert async_to_sync(scenario)() is None
    assert len(factory.feeds) == 1
