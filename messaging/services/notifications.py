"""
Notification broadcaster and inbox.

An event type maps to an audience (all staff, or one named patient), a
notification type and a title/message template.  ``broadcast`` resolves the
recipients first and then writes one row per recipient; each write stands
alone, so a failure for one recipient leaves the rest in place and is
reported in the result instead of raised.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError, transaction

from messaging.exceptions import PartialBroadcastFailure, StoreError, ValidationError
from messaging.models import PatientNotification, StaffNotification
from messaging.services.feed import publish_notification
from messaging.services.identity import require_profile, staff_ids
from messaging.types import ROLE_PATIENT, ROLE_STAFF, Caller, Notification

logger = logging.getLogger(__name__)

STOCK_IN = 'in_stock'
STOCK_LOW = 'low_stock'
STOCK_OUT = 'out_of_stock'


@dataclass(frozen=True)
class EventSpec:
    audience: str
    type: str
    title: str
    template: str


EVENTS = {
    'message.to_staff': EventSpec(ROLE_STAFF, 'message', 'New Message', 'You have a new message from {sender_name}.'),
    'message.to_patient': EventSpec(ROLE_PATIENT, 'message', 'New Message', 'You have a new message from {sender_name}.'),
    'appointment.created': EventSpec(
        ROLE_STAFF, 'appointment', 'New Appointment',
        '{patient_name} booked an appointment for {appointment_date} at {start_time}.',
    ),
    'appointment.confirmed': EventSpec(
        ROLE_PATIENT, 'appointment', 'Appointment Confirmed',
        'Your appointment has been scheduled for {appointment_date} at {start_time}.',
    ),
    'inventory.low_stock': EventSpec(
        ROLE_STAFF, 'inventory', 'Low Stock Alert',
        '{item_name} is {stock_label} ({stocks_left} left).',
    ),
}

STORES = {
    ROLE_STAFF: StaffNotification,
    ROLE_PATIENT: PatientNotification,
}

# payload keys that steer recipients and are not copied into ``data``
_ROUTING_KEYS = ('patient_id', 'actor_id', 'data', 'title', 'message')


class _Fields(dict):
    def __missing__(self, key):
        return ''


@dataclass
class BroadcastResult:
    event_type: str
    created: List[Notification] = field(default_factory=list)
    failures: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialBroadcastFailure(self.event_type, self.failures)


def _user_id(value, name: str) -> int:
    try:
        user_id = int(value)
    except (TypeError, ValueError):
        user_id = 0
    if isinstance(value, bool) or user_id <= 0:
        raise ValidationError(f'{name} must be a user id')
    return user_id


def resolve_recipients(event: EventSpec, payload: Dict[str, Any]) -> List[int]:
    if event.audience == ROLE_STAFF:
        actor_id = payload.get('actor_id')
        if actor_id is not None:
            actor_id = _user_id(actor_id, 'actor_id')
        return [uid for uid in staff_ids() if uid != actor_id]
    patient_id = payload.get('patient_id')
    if patient_id in (None, ''):
        raise ValidationError('patient_id is required for patient notifications')
    patient_id = _user_id(patient_id, 'patient_id')
    patient = require_profile(patient_id)
    if patient.role != ROLE_PATIENT:
        raise ValidationError(f'user {patient_id} is not a patient')
    return [patient.id]


def _insert_notification(model, **fields):
    try:
        with transaction.atomic():
            return model.objects.create(**fields)
    except DatabaseError as exc:
        raise StoreError(str(exc)) from exc


def broadcast(event_type: str, payload: Optional[Dict[str, Any]] = None) -> BroadcastResult:
    """Write one notification per recipient of ``event_type``.

    ``payload`` fills the message template; ``patient_id`` names the
    recipient of patient events and ``actor_id`` is left out of staff
    fan-outs.  Anything else in the payload is stored as ``data`` unless an
    explicit ``data`` dict is given.
    """
    event = EVENTS.get(event_type)
    if event is None:
        raise ValidationError(f'unknown notification event {event_type!r}')
    payload = dict(payload or {})
    recipients = resolve_recipients(event, payload)

    title = payload.get('title') or event.title
    text = payload.get('message') or event.template.format_map(_Fields(payload))
    data = payload.get('data')
    if data is None:
        data = {k: v for k, v in payload.items() if k not in _ROUTING_KEYS}

    model = STORES[event.audience]
    result = BroadcastResult(event_type=event_type)
    for recipient_id in recipients:
        try:
            row = _insert_notification(
                model, recipient_id=recipient_id, type=event.type, title=title, message=text, data=data,
            )
        except StoreError as exc:
            result.failures.append((recipient_id, str(exc)))
            continue
        notification = Notification.from_row(row)
        result.created.append(notification)
        publish_notification(notification)

    if result.failures:
        logger.warning("%s", PartialBroadcastFailure(event_type, result.failures))
    logger.info("broadcast %s: %d created, %d failed", event_type, len(result.created), len(result.failures))
    return result


def stock_status(stocks_left: int, threshold: Optional[int] = None) -> str:
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    if stocks_left <= 0:
        return STOCK_OUT
    if stocks_left <= threshold:
        return STOCK_LOW
    return STOCK_IN


def check_inventory_level(item_name: str, stocks_left: int, *, actor_id: Optional[int] = None) -> Optional[BroadcastResult]:
    """Alert all staff when an item is low or out of stock; ``None`` when stock is fine."""
    status = stock_status(stocks_left)
    if status == STOCK_IN:
        return None
    return broadcast('inventory.low_stock', {
        'item_name': item_name,
        'stocks_left': stocks_left,
        'status': status,
        'stock_label': 'out of stock' if status == STOCK_OUT else 'running low',
        'actor_id': actor_id,
    })


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

def _store_for(caller: Caller):
    return STORES[caller.role]


def list_notifications(caller: Caller, limit: Optional[int] = None) -> List[Notification]:
    limit = limit or settings.NOTIFICATION_LIST_LIMIT
    rows = _store_for(caller).objects.filter(recipient_id=caller.id).order_by('-created_at', '-id')[:limit]
    return [Notification.from_row(r) for r in rows]


def unread_notification_count(caller: Caller) -> int:
    return _store_for(caller).objects.filter(recipient_id=caller.id, is_read=False).count()


def mark_notification_read(caller: Caller, notification_id: int) -> int:
    """Mark one of the caller's notifications read; 0 when it already was."""
    model = _store_for(caller)
    if not model.objects.filter(id=notification_id, recipient_id=caller.id).exists():
        raise ValidationError(f'unknown notification {notification_id}')
    return model.objects.filter(id=notification_id, recipient_id=caller.id, is_read=False).update(is_read=True)


def mark_all_notifications_read(caller: Caller) -> int:
    return _store_for(caller).objects.filter(recipient_id=caller.id, is_read=False).update(is_read=True)
