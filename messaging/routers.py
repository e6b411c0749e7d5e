"""
URL mappings for the messaging API.

Trailing slashes are deliberately omitted to match the front-end client.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view
from .views import health
from .views.messages import messages, messages_read, conversations
from .views.notifications import notifications, notifications_read, notifications_broadcast, inventory_check


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),
    # Messages
    path('api/messages', messages, name='messages'),
    path('api/messages/read', messages_read, name='messages_read'),
    path('api/conversations', conversations, name='conversations'),
    # Notifications
    path('api/notifications', notifications, name='notifications'),
    path('api/notifications/read', notifications_read, name='notifications_read'),
    path('api/notifications/broadcast', notifications_broadcast, name='notifications_broadcast'),
    path('api/inventory/check', inventory_check, name='inventory_check'),
]
