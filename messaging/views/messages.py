"""
Direct message endpoints.

``/api/messages`` sends (POST) and lists one conversation (GET);
``/api/messages/read`` records read receipts.  Messages are stored in the
staff or patient channel table; listing without a ``channel`` returns both
merged in time order.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..serializers.messages import MessageListQuerySerializer, MessageReadSerializer, MessageSendSerializer
from ..services import receipts
from ..services.conversations import conversation_for, list_conversations, unread_count
from ..services.identity import resolve_caller
from ..services.messages import send_message


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def messages(request):
    caller = resolve_caller(request.user)
    if request.method == 'POST':
        s = MessageSendSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data
        message = send_message(caller, v['receiverId'], v['content'], v.get('channel'), v.get('clientToken'))
        return Response({'ok': True, 'message': message.to_payload()}, status=status.HTTP_201_CREATED)

    q = MessageListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    timeline = conversation_for(caller, q.validated_data['partnerId'], q.validated_data.get('channel'))
    return Response({
        'ok': True,
        'data': [m.to_payload() for m in timeline],
        'unread': unread_count(timeline, caller.id),
    })


messages.cls.throttle_scope = 'message_send'


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def messages_read(request):
    caller = resolve_caller(request.user)
    s = MessageReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    updated = receipts.mark_read(caller, s.validated_data['partnerId'], s.validated_data.get('channel'))
    return Response({'ok': True, 'updated': updated})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def conversations(request):
    """Everyone the caller has messaged with, newest activity first."""
    caller = resolve_caller(request.user)
    return Response({'ok': True, 'data': [c.to_payload() for c in list_conversations(caller)]})
