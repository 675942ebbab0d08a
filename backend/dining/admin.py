from django.contrib import admin
from .models import GroupDining, GroupDiningInvitation


@admin.register(GroupDining)
class GroupDiningAdmin(admin.ModelAdmin):
    """
    Admin interface for GroupDining model.
    """
    list_display = ['title', 'restaurant_name', 'organizer_name', 'scheduled_date', 'max_participants', 'status']
    list_filter = ['status', 'scheduled_date']
    search_fields = ['title', 'restaurant_name', 'organizer_name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'reminder_sent_at']
    date_hierarchy = 'scheduled_date'

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'title', 'description', 'organizer', 'organizer_name')
        }),
        ('Restaurant', {
            'fields': ('restaurant', 'restaurant_name', 'restaurant_address')
        }),
        ('Schedule', {
            'fields': ('scheduled_date', 'max_participants', 'status', 'reminder_sent_at')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    def get_queryset(self, request):
        """Optimize queryset with select_related"""
        queryset = super().get_queryset(request)
        return queryset.select_related('restaurant', 'organizer')


@admin.register(GroupDiningInvitation)
class GroupDiningInvitationAdmin(admin.ModelAdmin):
    list_display = ['group_title', 'from_user_name', 'to_user', 'status', 'sent_at']
    list_filter = ['status']
    search_fields = ['group_title', 'from_user_name']
    readonly_fields = ['id', 'sent_at', 'responded_at']
