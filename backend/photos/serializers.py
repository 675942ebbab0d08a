"""
DRF serializers for RestaurantPhoto documents.
"""
from rest_framework import serializers

from .models import PhotoTag
from .services import MAX_CAPTION_LENGTH


class PhotoDTO(serializers.Serializer):
    """Read representation of a RestaurantPhoto document."""
    id = serializers.CharField(read_only=True)
    restaurant_id = serializers.CharField(read_only=True)
    restaurant_name = serializers.CharField(read_only=True)
    user_id = serializers.CharField(read_only=True)
    user_name = serializers.CharField(read_only=True)
    user_photo_url = serializers.URLField(read_only=True, allow_null=True)
    photo_url = serializers.URLField(read_only=True)
    caption = serializers.CharField(read_only=True)
    tags = serializers.ListField(child=serializers.CharField(), read_only=True)
    like_count = serializers.IntegerField(read_only=True)
    liked_by_me = serializers.SerializerMethodField()
    is_verified = serializers.BooleanField(read_only=True)
    created_at = serializers.DateTimeField(read_only=True)

    def get_liked_by_me(self, obj):
        profile = self.context.get('profile')
        return profile is not None and obj.is_liked_by(profile.pk)


class PhotoUploadSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField(max_length=255)
    image = serializers.FileField()
    caption = serializers.CharField(max_length=MAX_CAPTION_LENGTH, allow_blank=True, required=False, default='')
    tags = serializers.ListField(
        child=serializers.ChoiceField(choices=PhotoTag.ALL),
        required=False,
        default=list
    )
