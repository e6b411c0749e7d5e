import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from messaging.exceptions import MessageTooLong, StoreError, Unauthenticated, ValidationError
from messaging.services import receipts
from messaging.services.feed import message_group, notification_group
from messaging.services.identity import resolve_caller
from messaging.services.messages import send_message


async def _ws_error(ws, code: int, message: str, **extra):
    """
    Error frame sent to the client.
    4xxx: client errors, 5xxx: server errors.
    """
    await ws.send(json.dumps({"type": "error", "code": code, "message": message, **extra}))


class _ViewerConsumer(AsyncWebsocketConsumer):
    """Joins the authenticated viewer's own group on connect."""

    def group_for(self, user_id: int) -> str:
        raise NotImplementedError

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        try:
            self.caller = resolve_caller(user)
        except Unauthenticated:
            await self.close(code=4001)
            return
        self.group_name = self.group_for(self.caller.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)


class MessagesConsumer(_ViewerConsumer):
    """
    ws/messages/

    Pushes ``message.inserted`` / ``message.updated`` frames for the viewer
    and accepts ``send`` and ``read`` frames:

        {"type": "send", "receiverId": 7, "content": "...", "clientToken": "..."}
        {"type": "read", "partnerId": 7}
    """

    def group_for(self, user_id):
        return message_group(user_id)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return

        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        kind = data.get("type")
        if kind == "send":
            await self._send_frame(data)
        elif kind == "read":
            await self._read_frame(data)
        else:
            await _ws_error(self, 4002, "unsupported_type")

    async def _send_frame(self, data):
        content = data.get("content", "")
        token = data.get("clientToken")
        if not isinstance(content, str):
            await _ws_error(self, 4003, "invalid_content_type", clientToken=token)
            return
        if not content.strip():
            await _ws_error(self, 4004, "empty_message", clientToken=token)
            return
        try:
            receiver_id = int(data.get("receiverId"))
        except (TypeError, ValueError):
            await _ws_error(self, 4006, "invalid_receiver", clientToken=token)
            return

        try:
            message = await sync_to_async(send_message)(
                self.caller, receiver_id, content, data.get("channel") or None, token
            )
        except MessageTooLong:
            await _ws_error(self, 4005, "message_too_long", clientToken=token)
        except ValidationError as exc:
            await _ws_error(self, 4006, str(exc), clientToken=token)
        except PermissionError:
            await _ws_error(self, 4007, "forbidden", clientToken=token)
        except StoreError:
            await _ws_error(self, 5003, "store_error", clientToken=token)
        else:
            # the stored row also arrives through the group as message.inserted
            await self.send(json.dumps({"type": "ack", "clientToken": token, "message": message.to_payload()}))

    async def _read_frame(self, data):
        try:
            partner_id = int(data.get("partnerId"))
        except (TypeError, ValueError):
            await _ws_error(self, 4006, "invalid_partner")
            return
        try:
            updated = await sync_to_async(receipts.mark_read)(self.caller, partner_id, data.get("channel") or None)
        except ValidationError as exc:
            await _ws_error(self, 4006, str(exc))
        except PermissionError:
            await _ws_error(self, 4007, "forbidden")
        except StoreError:
            await _ws_error(self, 5003, "store_error")
        else:
            await self.send(json.dumps({"type": "read", "partnerId": partner_id, "updated": updated}))

    # group_send handler: {"type": "feed.event", "kind": "message.inserted", "message": {...}}
    async def feed_event(self, event):
        await self.send(json.dumps({"type": event["kind"], "message": event["message"]}))


class NotificationsConsumer(_ViewerConsumer):
    """ws/notifications/ : read-only stream of the viewer's new notifications."""

    def group_for(self, user_id):
        return notification_group(user_id)

    async def notification_created(self, event):
        await self.send(json.dumps({"type": "notification", "notification": event["notification"]}))
