from django.contrib import admin
from .models import FriendRequest, Friendship, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'display_name', 'friends_count', 'selected_restaurant_name', 'last_seen')
    search_fields = ('user__username', 'user__email', 'display_name')
    readonly_fields = ('id', 'friends_count', 'created_at')


@admin.register(Friendship)
class FriendshipAdmin(admin.ModelAdmin):
    list_display = ('profile', 'friend', 'created_at')


@admin.register(FriendRequest)
class FriendRequestAdmin(admin.ModelAdmin):
    list_display = ('from_user', 'to_user', 'status', 'sent_at', 'responded_at')
    list_filter = ('status',)
