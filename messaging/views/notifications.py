from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsStaffRole
from ..serializers.notifications import (
    BroadcastSerializer,
    InventoryCheckSerializer,
    NotificationListQuerySerializer,
    NotificationReadSerializer,
)
from ..services import notifications as notify
from ..services.identity import resolve_caller


def _result_payload(result) -> dict:
    return {
        'ok': not result.partial,
        'event': result.event_type,
        'created': len(result.created),
        'failures': [{'recipientId': rid, 'reason': reason} for rid, reason in result.failures],
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    caller = resolve_caller(request.user)
    q = NotificationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = notify.list_notifications(caller, q.validated_data.get('limit'))
    return Response({
        'ok': True,
        'data': [n.to_payload() for n in items],
        'unread': notify.unread_notification_count(caller),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notifications_read(request):
    """Mark one notification read (``{"id": 3}``) or all of them (``{}``)."""
    caller = resolve_caller(request.user)
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    notification_id = s.validated_data.get('id')
    if notification_id:
        updated = notify.mark_notification_read(caller, notification_id)
    else:
        updated = notify.mark_all_notifications_read(caller)
    return Response({'ok': True, 'updated': updated})


@api_view(['POST'])
@permission_classes([IsStaffRole])
def notifications_broadcast(request):
    """Staff trigger for a registered event (appointments and the like)."""
    s = BroadcastSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    payload = dict(s.validated_data['payload'])
    payload.setdefault('actor_id', request.user.id)
    result = notify.broadcast(s.validated_data['event'], payload)
    code = status.HTTP_207_MULTI_STATUS if result.partial else status.HTTP_201_CREATED
    return Response(_result_payload(result), status=code)


@api_view(['POST'])
@permission_classes([IsStaffRole])
def inventory_check(request):
    s = InventoryCheckSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    result = notify.check_inventory_level(v['itemName'], v['stocksLeft'], actor_id=request.user.id)
    if result is None:
        return Response({'ok': True, 'status': notify.STOCK_IN, 'created': 0})
    body = _result_payload(result)
    body['status'] = notify.stock_status(v['stocksLeft'])
    return Response(body, status=status.HTTP_207_MULTI_STATUS if result.partial else status.HTTP_201_CREATED)
