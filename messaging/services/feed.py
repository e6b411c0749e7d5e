"""
Change-feed publishing.

Every message insert or read-flag update is pushed to the channel-layer
group of each interested viewer (``messages.<user id>``); notifications go
to ``notifications.<user id>``.  A publish failure never undoes the write
that triggered it: subscribers fall back to staleness until their next
refetch.
"""
import logging
from typing import Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from messaging.types import FeedEvent, Message, Notification

logger = logging.getLogger(__name__)


def message_group(user_id: int) -> str:
    return f"messages.{user_id}"


def notification_group(user_id: int) -> str:
    return f"notifications.{user_id}"


def _group_send(groups: Iterable[str], payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    for group in groups:
        try:
            async_to_sync(channel_layer.group_send)(group, payload)
        except Exception:
            logger.warning("feed publish to %s failed", group, exc_info=True)


def publish_message(kind: str, message: Message, *, user_ids: Iterable[int]) -> None:
    event = FeedEvent(kind=kind, message=message)
    _group_send([message_group(uid) for uid in dict.fromkeys(user_ids)], event.to_layer())


def publish_notification(notification: Notification) -> None:
    _group_send(
        [notification_group(notification.recipient_id)],
        {'type': 'notification.created', 'notification': notification.to_payload()},
    )
