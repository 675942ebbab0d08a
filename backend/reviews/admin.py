from django.contrib import admin
from .models import RestaurantRating, Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('restaurant_name', 'user_name', 'rating', 'is_verified_visit', 'created_at')
    list_filter = ('is_verified_visit',)
    search_fields = ('restaurant_name', 'user_name', 'review_text')
    # Ratings change only through ReviewService so the aggregate stays consistent
    readonly_fields = ('id', 'restaurant', 'user', 'rating', 'created_at', 'updated_at')


@admin.register(RestaurantRating)
class RestaurantRatingAdmin(admin.ModelAdmin):
    list_display = ('restaurant', 'average_rating', 'total_reviews', 'last_updated')
    readonly_fields = ('restaurant', 'average_rating', 'total_reviews', 'rating_distribution', 'last_updated')
