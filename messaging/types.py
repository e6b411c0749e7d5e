"""
Plain value types shared by the store, the realtime feed and the client
timeline.

Rows from both message tables are converted to :class:`Message` so that
conversation merging, de-duplication and the delivery pipeline only ever
deal with one type carrying a ``channel`` tag.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils.dateparse import parse_datetime

CHANNEL_STAFF = 'staff'
CHANNEL_PATIENT = 'patient'
CHANNELS = (CHANNEL_STAFF, CHANNEL_PATIENT)

ROLE_STAFF = 'staff'
ROLE_PATIENT = 'patient'

EVENT_MESSAGE_INSERTED = 'message.inserted'
EVENT_MESSAGE_UPDATED = 'message.updated'


@dataclass(frozen=True)
class Caller:
    id: int
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_STAFF

    @property
    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT


@dataclass(frozen=True)
class Message:
    id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: datetime
    is_read: bool
    channel: str
    client_token: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> 'Message':
        return cls(
            id=row.id,
            sender_id=row.sender_id,
            receiver_id=row.receiver_id,
            content=row.content,
            created_at=row.created_at,
            is_read=row.is_read,
            channel=row.CHANNEL,
            client_token=row.client_token or None,
        )

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'Message':
        created_at = data['createdAt']
        if isinstance(created_at, str):
            created_at = parse_datetime(created_at)
        return cls(
            id=int(data['id']),
            sender_id=int(data['senderId']),
            receiver_id=int(data['receiverId']),
            content=data['content'],
            created_at=created_at,
            is_read=bool(data.get('isRead', False)),
            channel=data['channel'],
            client_token=data.get('clientToken') or None,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'content': self.content,
            'createdAt': self.created_at.isoformat(),
            'isRead': self.is_read,
            'channel': self.channel,
            'clientToken': self.client_token,
        }

    def read(self) -> 'Message':
        return replace(self, is_read=True)


@dataclass(frozen=True)
class FeedEvent:
    """One change pushed by the realtime feed."""
    kind: str
    message: Message

    @classmethod
    def from_layer(cls, event: Dict[str, Any]) -> 'FeedEvent':
        return cls(kind=event['kind'], message=Message.from_payload(event['message']))

    def to_layer(self) -> Dict[str, Any]:
        # "type" routes the event to the consumer handler ``feed_event``
        return {'type': 'feed.event', 'kind': self.kind, 'message': self.message.to_payload()}


@dataclass(frozen=True)
class Notification:
    id: int
    recipient_id: int
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row) -> 'Notification':
        return cls(
            id=row.id,
            recipient_id=row.recipient_id,
            type=row.type,
            title=row.title,
            message=row.message,
            is_read=row.is_read,
            created_at=row.created_at,
            data=dict(row.data or {}),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'recipientId': self.recipient_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data,
            'isRead': self.is_read,
            'createdAt': self.created_at.isoformat(),
        }
