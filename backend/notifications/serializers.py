from rest_framework import serializers
from .models import Notification, DeviceToken, DevicePlatform


class NotificationSerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.name', read_only=True, allow_null=True)
    actor_id = serializers.UUIDField(source='actor.id', read_only=True, allow_null=True)
    deep_link = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id',
            'actor_id',
            'actor_name',
            'verb',
            'title',
            'body',
            'target_object_id',
            'is_read',
            'data',
            'deep_link',
            'created_at',
        ]
        read_only_fields = fields

    def get_deep_link(self, obj):
        return obj.get_deep_link()


class DeviceTokenSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = DeviceToken
        fields = ['id', 'username', 'token', 'platform', 'is_active', 'created_at']
        read_only_fields = ['id', 'username', 'is_active', 'created_at']
        extra_kwargs = {
            'token': {'write_only': True},
        }


class DeviceTokenRegisterSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=500)
    platform = serializers.ChoiceField(choices=DevicePlatform.choices, default=DevicePlatform.ANDROID)


class BulkNotificationSerializer(serializers.Serializer):
    notification_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        help_text="Notification ids owned by the current user"
    )
    action = serializers.ChoiceField(choices=['mark_as_read', 'mark_as_unread', 'delete'])
