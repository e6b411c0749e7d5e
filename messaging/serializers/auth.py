from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(trim_whitespace=True)
    password = serializers.CharField(trim_whitespace=False)

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password is required')
        return v
