"""
Error taxonomy for the messaging core and the unified API error envelope.

Every error leaving the HTTP surface is shaped as
``{'ok': False, 'error': {'code': ..., 'message': ...}}``.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class MessagingError(Exception):
    code = 'messaging_error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class Unauthenticated(MessagingError):
    """No resolvable staff/patient caller."""
    code = 'unauthenticated'
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(MessagingError):
    """Bad input: empty content, unknown receiver or channel."""
    code = 'validation_error'
    status_code = status.HTTP_400_BAD_REQUEST


class MessageTooLong(ValidationError):
    """Sanitised content is over ``MESSAGE_MAX_LENGTH``."""


class StoreError(MessagingError):
    """Transient persistence failure; the caller may resubmit manually."""
    code = 'store_error'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class FeedDisconnected(MessagingError):
    """The realtime feed connection dropped."""
    code = 'feed_disconnected'


class PartialBroadcastFailure(MessagingError):
    """Some notification recipients could not be written."""
    code = 'partial_broadcast_failure'

    def __init__(self, event_type: str, failures):
        self.event_type = event_type
        self.failures = list(failures)
        super().__init__(f"{event_type}: {len(self.failures)} recipient(s) failed")


def api_exception_handler(exc, context):
    if isinstance(exc, MessagingError):
        return Response({'ok': False, 'error': {'code': exc.code, 'message': str(exc)}}, status=exc.status_code)
    if isinstance(exc, PermissionError):
        return Response({'ok': False, 'error': {'code': 'forbidden', 'message': str(exc)}}, status=status.HTTP_403_FORBIDDEN)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
