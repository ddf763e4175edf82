from django.conf import settings
from rest_framework import serializers


class ChatMessageSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=['user', 'assistant'])
    content = serializers.CharField(trim_whitespace=False)

    def validate_content(self, v):
        if not v.strip():
            raise serializers.ValidationError('Message content cannot be empty')
        if len(v) > settings.CHAT_MAX_CONTENT:
            raise serializers.ValidationError('Message is too long')
        return v


class ChatRequestSerializer(serializers.Serializer):
    messages = ChatMessageSerializer(many=True, allow_empty=False)

    def validate_messages(self, v):
        if len(v) > settings.CHAT_MAX_MESSAGES:
            raise serializers.ValidationError('Too many messages in one request')
        return v
