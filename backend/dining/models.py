import uuid

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from restaurants.models import Restaurant
from user.models import UserProfile

from . import lifecycle
from .lifecycle import DiningSnapshot


class GroupDining(models.Model):
    """
    A scheduled meal at one restaurant that several users join. Restaurant and
    organizer display fields are copied in at creation.
    """

    class Status(models.TextChoices):
        ACTIVE = lifecycle.ACTIVE, 'Active'
        CANCELLED = lifecycle.CANCELLED, 'Cancelled'
        COMPLETED = lifecycle.COMPLETED, 'Completed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='group_dinings')
    restaurant_name = models.CharField(max_length=255)
    restaurant_address = models.CharField(max_length=512, blank=True, default="")

    organizer = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='organized_dinings')
    organizer_name = models.CharField(max_length=150)
    organizer_photo_url = models.URLField(max_length=500, blank=True, null=True)

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    scheduled_date = models.DateTimeField()
    max_participants = models.PositiveIntegerField(validators=[MinValueValidator(lifecycle.MIN_PARTICIPANTS)])

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    participants = models.ManyToManyField(UserProfile, related_name='group_dinings', blank=True)

    # Set once the upcoming-event reminder went out
    reminder_sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'dining_group_dining'
        ordering = ['scheduled_date']
        indexes = [
            models.Index(fields=['status', 'scheduled_date'], name='dining_status_date_idx'),
            models.Index(fields=['restaurant', 'scheduled_date'], name='dining_restaurant_date_idx'),
        ]

    def __str__(self):
        return f"{self.title} @ {self.restaurant_name} ({self.get_status_display()})"

    def snapshot(self) -> DiningSnapshot:
        return DiningSnapshot(
            organizer_id=str(self.organizer_id),
            scheduled_date=self.scheduled_date,
            max_participants=self.max_participants,
            participants=frozenset(str(pk) for pk in self.participants.values_list('pk', flat=True)),
            invited_users=frozenset(str(pk) for pk in self.invitations.filter(
                status=GroupDiningInvitation.Status.PENDING
            ).values_list('to_user_id', flat=True)),
            status=self.status,
            updated_at=self.updated_at,
        )

    def write_back(self, before: DiningSnapshot, after: DiningSnapshot):
        """Persists the difference between two snapshots of this event."""
        joined = after.participants - before.participants
        left = before.participants - after.participants
        if joined:
            self.participants.add(*joined)
        if left:
            self.participants.remove(*left)
        # updated_at is auto_now
        if after.status != before.status or joined or left:
            self.status = after.status
            self.save(update_fields=['status', 'updated_at'])


class GroupDiningInvitation(models.Model):
    """Invitation to a group dining; answered once by the invitee."""

    class Status(models.TextChoices):
        PENDING = lifecycle.PENDING, 'Pending'
        ACCEPTED = lifecycle.ACCEPTED, 'Accepted'
        DECLINED = lifecycle.DECLINED, 'Declined'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group_dining = models.ForeignKey(GroupDining, on_delete=models.CASCADE, related_name='invitations')
    from_user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='sent_dining_invitations')
    to_user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='received_dining_invitations')
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='dining_invitations')

    from_user_name = models.CharField(max_length=150)
    from_user_photo_url = models.URLField(max_length=500, blank=True, null=True)
    group_title = models.CharField(max_length=255)
    restaurant_name = models.CharField(max_length=255)
    scheduled_date = models.DateTimeField()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    sent_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'dining_invitation'
        ordering = ['-sent_at']
        constraints = [
            models.UniqueConstraint(
                fields=['group_dining', 'to_user'],
                condition=Q(status='PENDING'),
                name='unique_pending_dining_invite'
            )
        ]
        indexes = [
            models.Index(fields=['to_user', 'status'], name='invite_to_user_status_idx'),
        ]

    def __str__(self):
        return f"{self.from_user_name} -> {self.to_user_id}: {self.group_title} ({self.status})"
