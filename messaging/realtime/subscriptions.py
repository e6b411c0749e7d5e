"""
Realtime subscription manager.

Any number of callbacks may watch a viewer's message feed, but the manager
keeps exactly one feed connection per viewer id: it is opened by the first
subscriber and closed when the last one leaves.  A dropped connection is
replaced with a single new one while subscribers remain.

The manager is an ordinary object handed to whatever needs it (a delivery
pipeline, a test); nothing here is process global.
"""
import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional

from channels.layers import get_channel_layer
from django.conf import settings

from messaging.exceptions import FeedDisconnected
from messaging.services.feed import message_group
from messaging.types import FeedEvent

logger = logging.getLogger(__name__)

Callback = Callable[[FeedEvent], None]


class ChannelLayerFeed:
    """A viewer's ``messages.<id>`` group read through its own layer channel.

    ``start`` must be called with an event loop running; the receive loop
    runs as a task on it.
    """

    def __init__(self, viewer_id: int, on_event: Callback, on_disconnect: Callable[[], None], *, channel_layer=None):
        self.viewer_id = viewer_id
        self._on_event = on_event
        self._on_disconnect = on_disconnect
        self._layer = channel_layer
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.ready = asyncio.Event()

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        self._closed = True
        if self._task is not None:
            self._task.cancel()

    async def _run(self) -> None:
        layer = self._layer or get_channel_layer()
        group = message_group(self.viewer_id)
        channel = None
        try:
            channel = await layer.new_channel()
            await layer.group_add(group, channel)
            self.ready.set()
            while True:
                event = await layer.receive(channel)
                if event.get('type') == 'feed.event':
                    self._on_event(FeedEvent.from_layer(event))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("feed for viewer %s failed", self.viewer_id, exc_info=True)
            if not self._closed:
                self._on_disconnect()
        finally:
            if channel is not None:
                try:
                    await layer.group_discard(group, channel)
                except Exception:
                    logger.debug("group_discard %s failed", group, exc_info=True)


class _Registration:
    __slots__ = ('callback',)

    def __init__(self, callback: Callback):
        self.callback = callback


class SubscriptionManager:
    def __init__(self, feed_factory=None, *, resubscribe_delay: Optional[float] = None):
        self._feed_factory = feed_factory or ChannelLayerFeed
        if resubscribe_delay is None:
            resubscribe_delay = settings.FEED_RESUBSCRIBE_DELAY
        self.resubscribe_delay = resubscribe_delay
        self._callbacks: Dict[int, List[_Registration]] = {}
        self._connections: Dict[int, object] = {}
        # wait_ready futures woken when the viewer's connection goes away
        self._replaced: Dict[int, List[asyncio.Future]] = {}

    def subscribe(self, viewer_id: int, callback: Callback) -> Callable[[], None]:
        """Register ``callback`` for the viewer's feed; returns ``unsubscribe``.

        ``unsubscribe`` takes effect immediately and may be called any number
        of times.
        """
        registration = _Registration(callback)
        self._callbacks.setdefault(viewer_id, []).append(registration)
        if viewer_id not in self._connections:
            self._open(viewer_id)

        def unsubscribe() -> None:
            registrations = self._callbacks.get(viewer_id)
            if not registrations or registration not in registrations:
                return
            registrations.remove(registration)
            if not registrations:
                del self._callbacks[viewer_id]
                self._close(viewer_id)

        return unsubscribe

    async def stream(self, viewer_id: int) -> AsyncIterator[FeedEvent]:
        """Yield the viewer's feed events until the iterator is closed."""
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(viewer_id, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def subscriber_count(self, viewer_id: int) -> int:
        return len(self._callbacks.get(viewer_id, ()))

    def connection_for(self, viewer_id: int):
        return self._connections.get(viewer_id)

    async def wait_ready(self, viewer_id: int) -> None:
        """Wait until the viewer's connection has joined its feed group.

        A connection that drops first is followed onto its replacement.
        Returns at once when no connection is open (e.g. a reopen is still
        pending); the caller's refetch covers that gap.
        """
        while True:
            ready = getattr(self._connections.get(viewer_id), 'ready', None)
            if ready is None or ready.is_set():
                return
            replaced = asyncio.get_running_loop().create_future()
            self._replaced.setdefault(viewer_id, []).append(replaced)
            ready_wait = asyncio.ensure_future(ready.wait())
            try:
                await asyncio.wait({ready_wait, replaced}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                ready_wait.cancel()
                waiters = self._replaced.get(viewer_id, [])
                if replaced in waiters:
                    waiters.remove(replaced)
                if not waiters:
                    self._replaced.pop(viewer_id, None)

    def close_all(self) -> None:
        for viewer_id in list(self._connections):
            self._callbacks.pop(viewer_id, None)
            self._close(viewer_id)

    def _open(self, viewer_id: int) -> None:
        holder = {}

        def on_disconnect() -> None:
            self._dropped(viewer_id, holder['connection'])

        connection = self._feed_factory(viewer_id, lambda event: self._dispatch(viewer_id, event), on_disconnect)
        holder['connection'] = connection
        self._connections[viewer_id] = connection
        connection.start()
        logger.info("feed opened for viewer %s", viewer_id)

    def _close(self, viewer_id: int) -> None:
        connection = self._connections.pop(viewer_id, None)
        if connection is None:
            return
        connection.close()
        self._wake_waiters(viewer_id)
        logger.info("feed closed for viewer %s", viewer_id)

    def _dispatch(self, viewer_id: int, event: FeedEvent) -> None:
        for registration in list(self._callbacks.get(viewer_id, ())):
            try:
                registration.callback(event)
            except Exception:
                logger.exception("feed callback for viewer %s raised", viewer_id)

    def _dropped(self, viewer_id: int, connection) -> None:
        if self._connections.get(viewer_id) is not connection:
            return
        del self._connections[viewer_id]
        logger.warning("%s", FeedDisconnected(f'feed for viewer {viewer_id} dropped'))
        self._wake_waiters(viewer_id)
        if viewer_id not in self._callbacks:
            return
        if self.resubscribe_delay > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                loop.call_later(self.resubscribe_delay, self._reopen, viewer_id)
                return
        self._reopen(viewer_id)

    def _wake_waiters(self, viewer_id: int) -> None:
        for waiter in self._replaced.get(viewer_id, ()):
            if not waiter.done():
                waiter.set_result(None)

    def _reopen(self, viewer_id: int) -> None:
        if viewer_id in self._callbacks and viewer_id not in self._connections:
            self._open(viewer_id)
