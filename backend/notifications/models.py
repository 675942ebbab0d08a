import uuid
from django.db import models
from django.contrib.auth.models import User
from user.models import UserProfile


class NotificationVerb(models.TextChoices):
    """Enumeration for notification types/actions"""
    FRIEND_REQUEST = 'FRIEND_REQUEST', 'Friend Request'
    FRIEND_ACTIVITY = 'FRIEND_ACTIVITY', 'Friend Activity'
    NEW_REVIEW = 'NEW_REVIEW', 'New Review'
    REVIEW_LIKED = 'REVIEW_LIKED', 'Review Liked'
    GROUP_DINING_INVITATION = 'GROUP_DINING_INVITATION', 'Group Dining Invitation'
    GROUP_DINING_REMINDER = 'GROUP_DINING_REMINDER', 'Group Dining Reminder'
    NEW_PHOTO = 'NEW_PHOTO', 'New Photo'
    SYSTEM_ALERT = 'SYSTEM_ALERT', 'System Alert'


class DevicePlatform(models.TextChoices):
    """Enumeration for device platforms"""
    iOS = 'iOS', 'iOS'
    ANDROID = 'ANDROID', 'Android'
    WEB = 'WEB', 'Web'


class Notification(models.Model):
    """
    Stored copy of every alert sent to a user, so the activity tab can show
    what was missed on the lock screen.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    recipient = models.ForeignKey(
        UserProfile,
        on_delete=models.CASCADE,
        related_name='received_notifications'
    )

    # Nullable for system messages
    actor = models.ForeignKey(
        UserProfile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='triggered_notifications'
    )

    verb = models.CharField(max_length=30, choices=NotificationVerb.choices)
    title = models.CharField(max_length=200)
    body = models.TextField()

    # Review/event/photo id, or a place id for restaurant targets
    target_object_id = models.CharField(max_length=255, blank=True, default='')

    is_read = models.BooleanField(default=False)

    # String-only payload, forwarded as FCM data
    data = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notifications_notification'
        indexes = [
            models.Index(fields=['recipient', 'created_at'], name='notif_recipient_created_idx'),
            models.Index(fields=['recipient', 'is_read'], name='notif_recipient_read_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.verb} notification for {self.recipient.user.username}"

    def mark_as_read(self):
        self.is_read = True
        self.save(update_fields=['is_read', 'updated_at'])

    def get_deep_link(self):
        """Mobile app URL for the notification target, None when there is nothing to open."""
        if self.verb == NotificationVerb.FRIEND_REQUEST:
            return f'socialeats://friends/requests/{self.target_object_id}' if self.target_object_id else None
        if not self.target_object_id:
            return None

        deep_link_map = {
            NotificationVerb.FRIEND_ACTIVITY: f'socialeats://restaurant/{self.target_object_id}',
            NotificationVerb.NEW_REVIEW: f'socialeats://review/{self.target_object_id}',
            NotificationVerb.REVIEW_LIKED: f'socialeats://review/{self.target_object_id}',
            NotificationVerb.GROUP_DINING_INVITATION: f'socialeats://dining/{self.target_object_id}',
            NotificationVerb.GROUP_DINING_REMINDER: f'socialeats://dining/{self.target_object_id}',
            NotificationVerb.NEW_PHOTO: f'socialeats://photo/{self.target_object_id}',
            NotificationVerb.SYSTEM_ALERT: f'socialeats://alert/{self.target_object_id}',
        }
        return deep_link_map.get(self.verb)


class DeviceToken(models.Model):
    """
    FCM registration token. A user can have several active tokens, one per device.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='device_tokens'
    )

    token = models.CharField(max_length=500, unique=True)

    platform = models.CharField(
        max_length=20,
        choices=DevicePlatform.choices,
        default=DevicePlatform.ANDROID
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notifications_device_token'
        indexes = [
            models.Index(fields=['user', 'is_active'], name='device_user_active_idx'),
        ]

    def __str__(self):
        return f"Device token for {self.user.username} ({self.platform})"
