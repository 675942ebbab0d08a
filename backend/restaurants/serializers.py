"""
DRF serializers for restaurants.
"""
from rest_framework import serializers
from .models import Restaurant


class RestaurantSerializer(serializers.ModelSerializer):
    photo_url = serializers.SerializerMethodField()

    class Meta:
        model = Restaurant
        fields = [
            'place_id',
            'name',
            'address',
            'latitude',
            'longitude',
            'google_rating',
            'price_level',
            'photo_url',
            'phone_number',
            'website',
            'opening_hours',
            'types',
            'updated_at',
        ]
        read_only_fields = fields

    def get_photo_url(self, obj):
        service = self.context.get('restaurant_service')
        if service is None or not obj.photo_reference:
            return None
        return service.photo_url(obj)


class RestaurantListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for nearby results"""

    distance_km = serializers.SerializerMethodField()

    class Meta:
        model = Restaurant
        fields = [
            'place_id',
            'name',
            'address',
            'latitude',
            'longitude',
            'google_rating',
            'price_level',
            'distance_km',
        ]

    def get_distance_km(self, obj):
        distance = getattr(obj, 'distance_km', None)
        return round(distance, 3) if distance is not None else None


class NearbyQuerySerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    radius = serializers.IntegerField(required=False, min_value=1, max_value=50000)
