from django.contrib import admin
from .models import Restaurant


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ('name', 'place_id', 'address', 'google_rating', 'updated_at')
    search_fields = ('name', 'address', 'place_id')
    readonly_fields = ('geohash', 'created_at', 'updated_at')
