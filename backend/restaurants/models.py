from django.db import models


class Restaurant(models.Model):
    """
    Local copy of a Google Places restaurant. The place id is the identity used
    everywhere else (reviews, ratings, group dining, photos, selections).
    """

    place_id = models.CharField(primary_key=True, max_length=255)

    name = models.CharField(max_length=255)
    address = models.CharField(max_length=512, blank=True, default='')

    latitude = models.FloatField()
    longitude = models.FloatField()
    # Precision 6 cell, used as cache key for nearby searches
    geohash = models.CharField(max_length=12, db_index=True, blank=True, default='')

    # Provider data; our own aggregate lives in reviews.RestaurantRating
    google_rating = models.FloatField(null=True, blank=True)
    price_level = models.PositiveSmallIntegerField(null=True, blank=True)
    photo_reference = models.CharField(max_length=512, blank=True, default='')
    phone_number = models.CharField(max_length=64, blank=True, default='')
    website = models.URLField(max_length=500, blank=True, default='')
    opening_hours = models.JSONField(default=dict, blank=True)
    types = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'restaurants_restaurant'
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not (-90 <= self.latitude <= 90 and -180 <= self.longitude <= 180):
            raise ValueError("Invalid coordinates: latitude must be -90 to 90, longitude must be -180 to 180")
        super().save(*args, **kwargs)

    def get_lat_lon(self):
        return (self.latitude, self.longitude)
