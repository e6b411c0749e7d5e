from rest_framework import serializers

from messaging.services.notifications import EVENTS


class NotificationListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False)


class NotificationReadSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1, required=False)


class BroadcastSerializer(serializers.Serializer):
    event = serializers.ChoiceField(choices=sorted(EVENTS))
    payload = serializers.DictField(required=False, default=dict)


class InventoryCheckSerializer(serializers.Serializer):
    itemName = serializers.CharField(max_length=255)
    stocksLeft = serializers.IntegerField()
