"""
MongoDB documents for restaurant photo sharing, stored with mongoengine.
"""
from django.utils import timezone
from mongoengine import (
    BooleanField, DateTimeField, Document, IntField, ListField, StringField, URLField
)


class PhotoTag:
    FOOD = "food"
    DRINKS = "drinks"
    INTERIOR = "interior"
    MENU = "menu"
    DESSERT = "dessert"
    GROUP = "group"
    SPECIAL = "special"
    VIEW = "view"

    ALL = [FOOD, DRINKS, INTERIOR, MENU, DESSERT, GROUP, SPECIAL, VIEW]


class RestaurantPhoto(Document):
    """
    A photo a user shared from a restaurant. Restaurant and uploader display
    fields are copied in so feeds render without joins against PostgreSQL.
    """

    restaurant_id = StringField(required=True, max_length=255)
    restaurant_name = StringField(required=True, max_length=255)

    # UserProfile.id as a string
    user_id = StringField(required=True)
    user_name = StringField(required=True, max_length=150)
    user_photo_url = URLField(null=True)

    photo_url = URLField(required=True)
    # Object path inside the storage bucket, used for deletion
    storage_path = StringField(default='')
    caption = StringField(max_length=500, default='')
    tags = ListField(StringField(choices=PhotoTag.ALL), default=list)

    # UserProfile ids; like_count mirrors len(likes) for sorting
    likes = ListField(StringField(), default=list)
    like_count = IntField(default=0, min_value=0)

    # Uploader's active selection matched this restaurant
    is_verified = BooleanField(default=False)

    created_at = DateTimeField(default=timezone.now)
    updated_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'restaurant_photos',
        'ordering': ['-created_at'],
        'indexes': [
            ('restaurant_id', '-created_at'),
            ('user_id', '-created_at'),
            'tags',
            '-like_count',
        ]
    }

    def __str__(self):
        return f"Photo {self.id} by {self.user_name} at {self.restaurant_name}"

    def is_liked_by(self, profile_id) -> bool:
        return str(profile_id) in self.likes
