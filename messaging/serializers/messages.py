from rest_framework import serializers

from messaging.types import CHANNELS


class MessageSendSerializer(serializers.Serializer):
    receiverId = serializers.IntegerField(min_value=1)
    # emptiness and length are checked after sanitising, in the store
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    channel = serializers.ChoiceField(choices=CHANNELS, required=False)
    clientToken = serializers.CharField(max_length=64, required=False, allow_blank=True)


class MessageListQuerySerializer(serializers.Serializer):
    partnerId = serializers.IntegerField(min_value=1)
    channel = serializers.ChoiceField(choices=CHANNELS, required=False)


class MessageReadSerializer(serializers.Serializer):
    partnerId = serializers.IntegerField(min_value=1)
    channel = serializers.ChoiceField(choices=CHANNELS, required=False)
