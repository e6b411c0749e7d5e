"""
Message delivery pipeline for one open conversation.

``submit`` shows the message at once as an optimistic entry, then awaits
the transport.  The stored row settles the entry (Confirmed).  A failed
send leaves it on the timeline as Failed so it can be resubmitted by hand.
Nothing here retries on its own.
"""
import logging
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.conf import settings

from messaging.delivery.timeline import STATE_FAILED, Entry, Timeline, new_client_token
from messaging.exceptions import ValidationError
from messaging.services import receipts
from messaging.services.conversations import conversation_for
from messaging.services.messages import default_channel, send_message
from messaging.types import Caller, FeedEvent, Message

logger = logging.getLogger(__name__)


class LocalTransport:
    """Runs the server-side operations in-process on behalf of ``caller``."""

    def __init__(self, caller: Caller):
        self.caller = caller

    async def send(self, receiver_id: int, content: str, channel: str, client_token: str) -> Message:
        return await sync_to_async(send_message)(self.caller, receiver_id, content, channel, client_token)

    async def fetch(self, partner_id: int) -> List[Message]:
        return await sync_to_async(conversation_for)(self.caller, partner_id)

    async def mark_read(self, partner_id: int) -> int:
        return await sync_to_async(receipts.mark_read)(self.caller, partner_id)


class DeliveryPipeline:
    def __init__(self, caller: Caller, partner_id: int, *, transport=None, subscriptions=None,
                 channel: Optional[str] = None, confirm_window: Optional[float] = None):
        self.caller = caller
        self.partner_id = partner_id
        self.transport = transport or LocalTransport(caller)
        self.subscriptions = subscriptions
        self.channel = channel or default_channel(caller)
        if confirm_window is None:
            confirm_window = settings.OPTIMISTIC_CONFIRM_WINDOW
        self.confirm_window = confirm_window
        self.timeline = Timeline(caller.id, partner_id)
        self._unsubscribe = None

    async def open(self, *, mark_read: bool = True) -> Timeline:
        """Subscribe to the feed, clear unread rows and load the conversation."""
        if self.subscriptions is not None and self._unsubscribe is None:
            self._unsubscribe = self.subscriptions.subscribe(self.caller.id, self._on_event)
        try:
            if self._unsubscribe is not None:
                await self.subscriptions.wait_ready(self.caller.id)
            if mark_read:
                await self.transport.mark_read(self.partner_id)
            await self.refresh()
        except BaseException:
            self.close()
            raise
        return self.timeline

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def refresh(self) -> Timeline:
        messages = await self.transport.fetch(self.partner_id)
        self.timeline.replace_all(messages)
        return self.timeline

    async def submit(self, content: str) -> Entry:
        """Send ``content``; returns the entry in its settled state.

        Validation and permission errors are raised and leave nothing on the
        timeline.  Any other failure marks the entry Failed.
        """
        if not isinstance(content, str) or not content.strip():
            raise ValidationError('message cannot be empty')
        return await self._send(content.strip(), new_client_token())

    async def resubmit(self, entry: Entry) -> Entry:
        """Send a failed entry again under its original client token.

        If the first attempt did reach the store after all, the store hands
        back that row instead of inserting another.
        """
        if entry.state != STATE_FAILED:
            raise ValidationError('only failed messages can be resubmitted')
        self.timeline.discard(entry)
        return await self._send(entry.content, entry.client_token or new_client_token())

    async def _send(self, content: str, client_token: str) -> Entry:
        entry = self.timeline.add_optimistic(content, self.channel, client_token=client_token)
        try:
            message = await self.transport.send(self.partner_id, content, self.channel, entry.client_token)
        except (ValidationError, PermissionError):
            self.timeline.discard(entry)
            raise
        except Exception as exc:
            logger.warning("send to %s failed, kept for resubmit", self.partner_id, exc_info=True)
            return self.timeline.fail(entry, str(exc) or exc.__class__.__name__)
        return self.timeline.confirm(entry, message)

    def expire_pending(self, now=None) -> List[Entry]:
        return self.timeline.expire_pending(self.confirm_window, now)

    def _on_event(self, event: FeedEvent) -> None:
        self.timeline.apply_event(event)
