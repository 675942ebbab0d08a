"""
Serializers for reviews and rating aggregates.
"""
from rest_framework import serializers

from .aggregation import MAX_RATING, MIN_RATING
from .models import Review


class ReviewSerializer(serializers.ModelSerializer):
    restaurant_id = serializers.CharField(read_only=True)
    user_id = serializers.UUIDField(read_only=True)
    like_count = serializers.SerializerMethodField()
    liked_by_me = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            'id',
            'restaurant_id',
            'restaurant_name',
            'user_id',
            'user_name',
            'user_photo_url',
            'rating',
            'review_text',
            'photos',
            'like_count',
            'liked_by_me',
            'is_verified_visit',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_like_count(self, obj):
        return len(obj.likes.all())

    def get_liked_by_me(self, obj):
        profile = self.context.get('profile')
        if profile is None:
            return False
        return any(liker.pk == profile.pk for liker in obj.likes.all())


class ReviewCreateSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField(max_length=255)
    rating = serializers.FloatField(min_value=MIN_RATING, max_value=MAX_RATING)
    review_text = serializers.CharField(allow_blank=True, required=False, default="")
    photos = serializers.ListField(child=serializers.URLField(max_length=500), required=False, default=list)


class RatingEditSerializer(serializers.Serializer):
    rating = serializers.FloatField(min_value=MIN_RATING, max_value=MAX_RATING)


class RatingAggregateSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField()
    average_rating = serializers.FloatField()
    total_reviews = serializers.IntegerField()
    rating_distribution = serializers.SerializerMethodField()
    last_updated = serializers.DateTimeField()

    def get_rating_distribution(self, obj):
        return {str(star): obj.rating_distribution.get(star, 0) for star in range(1, 6)}
