from django.urls import path

from messaging.realtime.consumers import MessagesConsumer, NotificationsConsumer

websocket_urlpatterns = [
    path("ws/messages/", MessagesConsumer.as_asgi()),
    path("ws/notifications/", NotificationsConsumer.as_asgi()),
]
