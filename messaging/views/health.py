from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import DatabaseError, connections
from django.http import JsonResponse


def _feed_ok() -> bool:
    layer = get_channel_layer()
    if layer is None:
        return False
    try:
        async_to_sync(layer.group_send)('healthz', {'type': 'health.ping'})
    except Exception:
        return False
    return True


def healthz(request):
    """Database and change-feed liveness."""
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
    feed = _feed_ok()
    return JsonResponse({'ok': feed, 'db': bool(row and row[0] == 1), 'feed': feed}, status=200 if feed else 503)
