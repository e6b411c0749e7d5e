"""
Client-side conversation timeline.

Holds what one open conversation shows: confirmed rows from both channels
plus outbound entries still waiting for (or having failed) confirmation.
Every arrival path (direct send response, feed event, full refetch) goes
through :meth:`Timeline.apply`, which collapses duplicates:

* a row already on the timeline (same channel and id) is updated in place;
* a row carrying a client token replaces the placeholder with that token;
* a row without a token replaces the oldest optimistic placeholder from the
  same sender with the same content, one placeholder per row.

A row that was seen read stays read, whatever order copies arrive in.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from django.utils import timezone

from messaging.types import FeedEvent, Message

STATE_OPTIMISTIC = 'optimistic'
STATE_CONFIRMED = 'confirmed'
STATE_FAILED = 'failed'


def new_client_token() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class Entry:
    key: str
    sender_id: int
    receiver_id: int
    content: str
    channel: str
    created_at: datetime
    state: str
    client_token: Optional[str] = None
    message: Optional[Message] = None
    error: Optional[str] = None

    @property
    def is_read(self) -> bool:
        return bool(self.message and self.message.is_read)

    @property
    def pending(self) -> bool:
        return self.state == STATE_OPTIMISTIC

    def _confirm(self, message: Message) -> None:
        if self.is_read and not message.is_read:
            # read flags never go back to unread
            message = message.read()
        self.key = _message_key(message)
        self.state = STATE_CONFIRMED
        self.message = message
        self.content = message.content
        self.created_at = message.created_at
        self.error = None


def _message_key(message: Message) -> str:
    # ids are only unique within one table
    return f"{message.channel}:{message.id}"


class Timeline:
    def __init__(self, viewer_id: int, partner_id: int):
        self.viewer_id = viewer_id
        self.partner_id = partner_id
        self._entries: List[Entry] = []

    def __len__(self):
        return len(self._entries)

    def belongs(self, message: Message) -> bool:
        return {message.sender_id, message.receiver_id} == {self.viewer_id, self.partner_id}

    def entries(self) -> List[Entry]:
        """Visible entries, oldest first; equal timestamps keep arrival order."""
        return sorted(self._entries, key=lambda e: e.created_at)

    def messages(self) -> List[Message]:
        return [e.message for e in self.entries() if e.state == STATE_CONFIRMED]

    def pending(self) -> List[Entry]:
        return [e for e in self._entries if e.state == STATE_OPTIMISTIC]

    def failed(self) -> List[Entry]:
        return [e for e in self._entries if e.state == STATE_FAILED]

    def unread_count(self) -> int:
        return sum(1 for m in self.messages() if m.receiver_id == self.viewer_id and not m.is_read)

    def find(self, message: Message) -> Optional[Entry]:
        key = _message_key(message)
        for entry in self._entries:
            if entry.key == key:
                return entry
        return None

    # -- outbound ---------------------------------------------------------

    def add_optimistic(self, content: str, channel: str, *, client_token: Optional[str] = None,
                       now: Optional[datetime] = None) -> Entry:
        entry = Entry(
            key=f"temp-{uuid.uuid4().hex}",
            sender_id=self.viewer_id,
            receiver_id=self.partner_id,
            content=content,
            channel=channel,
            created_at=now or timezone.now(),
            state=STATE_OPTIMISTIC,
            client_token=client_token,
        )
        self._entries.append(entry)
        return entry

    def confirm(self, entry: Entry, message: Message) -> Entry:
        """Settle ``entry`` with the stored row returned by the send."""
        existing = self.find(message)
        if existing is entry:
            return entry
        if existing is not None:
            # the feed delivered the row first
            self.discard(entry)
            return existing
        if entry in self._entries:
            entry._confirm(message)
            return entry
        return self.apply(message)

    def fail(self, entry: Entry, error: str) -> Entry:
        if entry.state != STATE_CONFIRMED:
            entry.state = STATE_FAILED
            entry.error = error
        return entry

    def discard(self, entry: Entry) -> None:
        if entry in self._entries:
            self._entries.remove(entry)

    def expire_pending(self, window: float, now: Optional[datetime] = None) -> List[Entry]:
        """Flag placeholders older than ``window`` seconds as failed."""
        cutoff = (now or timezone.now()) - timedelta(seconds=window)
        expired = [e for e in self._entries if e.state == STATE_OPTIMISTIC and e.created_at <= cutoff]
        for entry in expired:
            self.fail(entry, 'not confirmed in time')
        return expired

    # -- inbound ----------------------------------------------------------

    def apply(self, message: Message) -> Optional[Entry]:
        """Merge a stored row into the timeline; ``None`` if it is not for this pair."""
        if not self.belongs(message):
            return None
        existing = self.find(message)
        if existing is not None:
            existing._confirm(message)
            return existing

        placeholder = self._placeholder_for(message)
        if placeholder is not None:
            placeholder._confirm(message)
            return placeholder

        entry = Entry(
            key=_message_key(message),
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            channel=message.channel,
            created_at=message.created_at,
            state=STATE_CONFIRMED,
            client_token=message.client_token,
            message=message,
        )
        self._entries.append(entry)
        return entry

    def apply_event(self, event: FeedEvent) -> Optional[Entry]:
        return self.apply(event.message)

    def replace_all(self, messages: List[Message]) -> None:
        """Rebuild confirmed rows from a full fetch, keeping unsettled placeholders."""
        read_keys = {e.key for e in self._entries if e.is_read}
        self._entries = [e for e in self._entries if e.state != STATE_CONFIRMED]
        for message in messages:
            if not message.is_read and _message_key(message) in read_keys:
                message = message.read()
            self.apply(message)

    def _placeholder_for(self, message: Message) -> Optional[Entry]:
        if message.sender_id != self.viewer_id:
            return None
        if message.client_token:
            for entry in self._entries:
                if entry.state != STATE_CONFIRMED and entry.client_token == message.client_token:
                    return entry
            return None
        candidates = [
            e for e in self._entries
            if e.state == STATE_OPTIMISTIC and e.content == message.content and e.channel == message.channel
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.created_at)
