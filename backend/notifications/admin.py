from django.contrib import admin
from .models import Notification, DeviceToken


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'actor', 'verb', 'title', 'is_read', 'created_at')
    list_filter = ('verb', 'is_read', 'created_at')
    search_fields = ('title', 'body', 'recipient__user__username', 'actor__user__username')
    readonly_fields = ('id', 'recipient', 'actor', 'verb', 'title', 'body', 'created_at', 'updated_at')
    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'recipient', 'actor', 'verb')
        }),
        ('Content', {
            'fields': ('title', 'body', 'target_object_id', 'data')
        }),
        ('Status', {
            'fields': ('is_read', 'created_at', 'updated_at')
        }),
    )


@admin.register(DeviceToken)
class DeviceTokenAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'platform', 'is_active', 'updated_at')
    list_filter = ('platform', 'is_active')
    search_fields = ('user__username',)
    readonly_fields = ('id', 'token', 'created_at', 'updated_at')
