from rest_framework import serializers
from .models import FriendRequest, UserProfile


class SelectionSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField()
    restaurant_name = serializers.CharField()
    selected_at = serializers.DateTimeField()
    expires_at = serializers.DateTimeField()


class UserProfileSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)
    email = serializers.CharField(source="user.email", read_only=True)
    is_online = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = [
            "id",
            "username",
            "email",
            "display_name",
            "photo_url",
            "friends_count",
            "last_seen",
            "is_online",
        ]
        read_only_fields = ["id", "friends_count", "last_seen"]

    def get_is_online(self, obj):
        return obj.is_online()


class FriendSerializer(UserProfileSerializer):
    """Profile plus the friend's current (unexpired) selection."""
    selected_restaurant = serializers.SerializerMethodField()

    class Meta(UserProfileSerializer.Meta):
        fields = UserProfileSerializer.Meta.fields + ["selected_restaurant"]

    def get_selected_restaurant(self, obj):
        selection = obj.selection
        now = self.context.get('now')
        if selection is None or (now is not None and now > selection.expires_at):
            return None
        return SelectionSerializer(selection).data


class FriendRequestSerializer(serializers.ModelSerializer):
    from_user = UserProfileSerializer(read_only=True)
    to_user_id = serializers.UUIDField(source="to_user.id", read_only=True)

    class Meta:
        model = FriendRequest
        fields = ["id", "from_user", "to_user_id", "status", "sent_at", "responded_at"]


class FriendRequestCreateSerializer(serializers.Serializer):
    to_user_id = serializers.UUIDField()


class FriendRequestResponseSerializer(serializers.Serializer):
    accept = serializers.BooleanField()


class SelectRestaurantSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField(max_length=255)
