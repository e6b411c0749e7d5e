import logging
from typing import Optional

from messaging.services import notifications, store
from messaging.services.audit import log_action
from messaging.services.identity import check_partner_access, display_name, get_profile, require_profile
from messaging.types import CHANNEL_PATIENT, CHANNEL_STAFF, ROLE_PATIENT, Caller, Message

logger = logging.getLogger(__name__)


def default_channel(caller: Caller) -> str:
    return CHANNEL_STAFF if caller.is_staff else CHANNEL_PATIENT


def send_message(caller: Caller, receiver_id: int, content: str, channel: Optional[str] = None,
                 client_token: Optional[str] = None) -> Message:
    """Persist a message from ``caller`` and notify the receiving side.

    Store and validation errors propagate.  The notification fan-out runs
    after the row is saved and cannot fail the send.  Resending a client
    token that is already stored returns that row without notifying again.
    """
    channel = channel or default_channel(caller)
    if caller.is_patient and channel != CHANNEL_PATIENT:
        raise PermissionError('patients can only write to the patient channel')
    receiver = require_profile(receiver_id)
    check_partner_access(caller, receiver)

    message, created = store.write(caller.id, receiver.id, content, channel, client_token)
    if not created:
        return message
    log_action(user_id=caller.id, action='message_sent', object_type=f'{channel}_message', object_id=message.id,
               detail={'receiver_id': receiver.id})
    _notify_receiver(caller, receiver, message)
    return message


def _notify_receiver(caller: Caller, receiver, message: Message) -> None:
    event_type = 'message.to_patient' if receiver.role == ROLE_PATIENT else 'message.to_staff'
    sender = get_profile(caller.id)
    payload = {
        'sender_name': display_name(sender) if sender else '',
        'actor_id': caller.id,
        'data': {'sender_id': caller.id, 'message_id': message.id, 'channel': message.channel},
    }
    if receiver.role == ROLE_PATIENT:
        payload['patient_id'] = receiver.id
    try:
        notifications.broadcast(event_type, payload)
    except Exception:
        logger.warning("notification for %s message %s failed", message.channel, message.id, exc_info=True)
