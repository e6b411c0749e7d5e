"""
Message store adapter.

One interface over the two message tables.  Callers pass a channel
(``'staff'`` or ``'patient'``) and always get :class:`Message` values
back, never ORM rows.  Writes push a change event to the feed; they do not
create notifications.
"""
import logging
from typing import List, Optional, Tuple

import bleach
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q

from messaging.exceptions import MessageTooLong, StoreError, ValidationError
from messaging.models import PatientMessage, StaffMessage
from messaging.services.feed import publish_message
from messaging.services.identity import require_profile
from messaging.types import CHANNEL_PATIENT, CHANNEL_STAFF, EVENT_MESSAGE_INSERTED, EVENT_MESSAGE_UPDATED, Message

logger = logging.getLogger(__name__)

TABLES = {
    CHANNEL_STAFF: StaffMessage,
    CHANNEL_PATIENT: PatientMessage,
}

CLIENT_TOKEN_MAX_LENGTH = 64


def model_for(channel: str):
    try:
        return TABLES[channel]
    except KeyError:
        raise ValidationError(f'unknown channel {channel!r}') from None


def clean_content(content) -> str:
    if not isinstance(content, str):
        raise ValidationError('message content must be text')
    content = bleach.clean(content.strip(), strip=True).strip()
    if not content:
        raise ValidationError('message cannot be empty')
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise MessageTooLong(f'message longer than {settings.MESSAGE_MAX_LENGTH} characters')
    return content


def _pair(viewer_id: int, partner_id: int) -> Q:
    return Q(sender_id=viewer_id, receiver_id=partner_id) | Q(sender_id=partner_id, receiver_id=viewer_id)


def _stored_for_token(model, sender_id: int, client_token: Optional[str]):
    if not client_token:
        return None
    return model.objects.filter(sender_id=sender_id, client_token=client_token).first()


def send(sender_id: int, receiver_id: int, content: str, channel: str, client_token: Optional[str] = None) -> Message:
    """Insert one message row and publish it to both participants' feeds.

    A repeated ``client_token`` from the same sender returns the row that
    was already stored instead of inserting a second one.
    """
    message, _ = write(sender_id, receiver_id, content, channel, client_token)
    return message


def write(sender_id: int, receiver_id: int, content: str, channel: str,
          client_token: Optional[str] = None) -> Tuple[Message, bool]:
    """Like :func:`send`, also saying whether a new row was inserted."""
    model = model_for(channel)
    content = clean_content(content)
    if sender_id == receiver_id:
        raise ValidationError('cannot send a message to yourself')
    require_profile(receiver_id)
    client_token = (client_token or '').strip() or None
    if client_token and len(client_token) > CLIENT_TOKEN_MAX_LENGTH:
        raise ValidationError('client token too long')

    try:
        existing = _stored_for_token(model, sender_id, client_token)
        if existing is not None:
            logger.info("duplicate submit of %s token %s ignored", channel, client_token)
            return Message.from_row(existing), False
        try:
            with transaction.atomic():
                row = model.objects.create(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    content=content,
                    client_token=client_token,
                )
        except IntegrityError:
            # a concurrent submit with the same token won the insert
            existing = _stored_for_token(model, sender_id, client_token)
            if existing is None:
                raise
            return Message.from_row(existing), False
    except DatabaseError as exc:
        logger.warning("could not store %s message from %s", channel, sender_id, exc_info=True)
        raise StoreError('message could not be saved') from exc

    message = Message.from_row(row)
    publish_message(EVENT_MESSAGE_INSERTED, message, user_ids=(receiver_id, sender_id))
    return message, True


def list_for_pair(viewer_id: int, partner_id: int, channel: str) -> List[Message]:
    """Both directions of the pair in one channel, oldest first."""
    model = model_for(channel)
    try:
        rows = list(model.objects.filter(_pair(viewer_id, partner_id)).order_by('created_at', 'id'))
    except DatabaseError as exc:
        raise StoreError('messages could not be loaded') from exc
    return [Message.from_row(r) for r in rows]


def list_for_viewer(viewer_id: int, channel: str) -> List[Message]:
    model = model_for(channel)
    try:
        rows = list(
            model.objects.filter(Q(sender_id=viewer_id) | Q(receiver_id=viewer_id)).order_by('created_at', 'id')
        )
    except DatabaseError as exc:
        raise StoreError('messages could not be loaded') from exc
    return [Message.from_row(r) for r in rows]


def mark_read(viewer_id: int, partner_id: int, channel: str) -> int:
    """Flip every unread partner→viewer row to read; returns the count flipped.

    Calling it again with nothing unread updates zero rows.
    """
    model = model_for(channel)
    try:
        ids = list(
            model.objects.filter(sender_id=partner_id, receiver_id=viewer_id, is_read=False).values_list('id', flat=True)
        )
        if not ids:
            return 0
        updated = model.objects.filter(id__in=ids, is_read=False).update(is_read=True)
        rows = list(model.objects.filter(id__in=ids).order_by('created_at', 'id'))
    except DatabaseError as exc:
        raise StoreError('read state could not be saved') from exc

    for row in rows:
        publish_message(EVENT_MESSAGE_UPDATED, Message.from_row(row), user_ids=(partner_id, viewer_id))
    return updated

