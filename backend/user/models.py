import uuid
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from .selection import SelectedRestaurant


class UserProfile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile"
    )
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    display_name = models.CharField(max_length=150, blank=True, default="")
    photo_url = models.URLField(max_length=500, blank=True, null=True)
    friends_count = models.IntegerField(validators=[MinValueValidator(0)], default=0)
    last_seen = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    # Current "dining at" claim, see user.selection
    selected_restaurant_id = models.CharField(max_length=255, blank=True, default="")
    selected_restaurant_name = models.CharField(max_length=255, blank=True, default="")
    selected_at = models.DateTimeField(null=True, blank=True)
    selection_expires_at = models.DateTimeField(null=True, blank=True)

    friends = models.ManyToManyField(
        'self',
        through='Friendship',
        through_fields=('profile', 'friend'),
        symmetrical=False,
        related_name='+'
    )

    def __str__(self):
        return self.display_name or self.user.username

    @property
    def name(self) -> str:
        return self.display_name or self.user.username

    def is_online(self, now=None) -> bool:
        now = now or timezone.now()
        return self.last_seen > now - timedelta(minutes=settings.ONLINE_WINDOW_MINUTES)

    @property
    def selection(self) -> Optional[SelectedRestaurant]:
        """Stored selection, expired or not."""
        if not self.selected_restaurant_id or not self.selection_expires_at:
            return None
        return SelectedRestaurant(
            restaurant_id=self.selected_restaurant_id,
            restaurant_name=self.selected_restaurant_name,
            selected_at=self.selected_at,
            expires_at=self.selection_expires_at,
        )

    def store_selection(self, selection: Optional[SelectedRestaurant]):
        if selection is None:
            self.selected_restaurant_id = ""
            self.selected_restaurant_name = ""
            self.selected_at = None
            self.selection_expires_at = None
        else:
            self.selected_restaurant_id = selection.restaurant_id
            self.selected_restaurant_name = selection.restaurant_name
            self.selected_at = selection.selected_at
            self.selection_expires_at = selection.expires_at
        self.save(update_fields=[
            'selected_restaurant_id', 'selected_restaurant_name', 'selected_at', 'selection_expires_at'
        ])

    def add_friend(self, target_profile: "UserProfile"):
        if self != target_profile and not self.is_friends_with(target_profile):
            with transaction.atomic():
                Friendship.objects.create(profile=self, friend=target_profile)
                Friendship.objects.create(profile=target_profile, friend=self)

                self.friends_count = F('friends_count') + 1
                self.save(update_fields=['friends_count'])

                target_profile.friends_count = F('friends_count') + 1
                target_profile.save(update_fields=['friends_count'])

            self.refresh_from_db(fields=['friends_count'])
            target_profile.refresh_from_db(fields=['friends_count'])

    def remove_friend(self, target_profile: "UserProfile"):
        if self != target_profile and self.is_friends_with(target_profile):
            with transaction.atomic():
                Friendship.objects.filter(profile=self, friend=target_profile).delete()
                Friendship.objects.filter(profile=target_profile, friend=self).delete()

                self.friends_count = F('friends_count') - 1
                self.save(update_fields=['friends_count'])

                target_profile.friends_count = F('friends_count') - 1
                target_profile.save(update_fields=['friends_count'])

            self.refresh_from_db(fields=['friends_count'])
            target_profile.refresh_from_db(fields=['friends_count'])

    def is_friends_with(self, target_profile):
        return Friendship.objects.filter(profile=self, friend=target_profile).exists()

    def friend_ids(self):
        return list(Friendship.objects.filter(profile=self).values_list('friend_id', flat=True))


class Friendship(models.Model):
    """One direction of a symmetric friendship; add/remove always write both rows."""
    profile = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="friendship_relation")
    friend = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="friend_of_relation")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('profile', 'friend')


class FriendRequest(models.Model):

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        ACCEPTED = 'ACCEPTED', 'Accepted'
        DECLINED = 'DECLINED', 'Declined'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    from_user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="sent_friend_requests")
    to_user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="received_friend_requests")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    sent_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-sent_at']
        constraints = [
            models.UniqueConstraint(
                fields=['from_user', 'to_user'],
                condition=models.Q(status='PENDING'),
                name='unique_pending_friend_request',
            ),
        ]

    def __str__(self):
        return f"{self.from_user} -> {self.to_user} ({self.get_status_display()})"
