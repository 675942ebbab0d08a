"""
Serializers for group dining events and invitations.
"""
from django.utils import timezone
from rest_framework import serializers

from . import lifecycle
from .lifecycle import DiningSnapshot
from .models import GroupDining, GroupDiningInvitation


class GroupDiningSerializer(serializers.ModelSerializer):
    """
    Event with its derived state (full, expired, spots left) and what the
    requesting profile may do with it.
    """
    restaurant_id = serializers.CharField(read_only=True)
    organizer_id = serializers.UUIDField(read_only=True)
    participants = serializers.SerializerMethodField()

    class Meta:
        model = GroupDining
        fields = [
            'id',
            'restaurant_id',
            'restaurant_name',
            'restaurant_address',
            'organizer_id',
            'organizer_name',
            'organizer_photo_url',
            'title',
            'description',
            'scheduled_date',
            'max_participants',
            'status',
            'participants',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_participants(self, obj):
        return [str(p.pk) for p in obj.participants.all()]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        now = self.context.get('now') or timezone.now()
        snapshot = DiningSnapshot(
            organizer_id=str(instance.organizer_id),
            scheduled_date=instance.scheduled_date,
            max_participants=instance.max_participants,
            participants=frozenset(data['participants']),
            status=instance.status,
        )
        data['participant_count'] = len(snapshot.participants)
        data['is_full'] = lifecycle.is_full(snapshot)
        data['is_expired'] = lifecycle.is_expired(snapshot, now)
        data['available_spots'] = lifecycle.available_spots(snapshot)

        profile = self.context.get('profile')
        if profile is not None:
            data['can_join'] = lifecycle.can_join(snapshot, str(profile.pk), now)
            data['can_leave'] = lifecycle.can_leave(snapshot, str(profile.pk))
        return data


class GroupDiningCreateSerializer(serializers.Serializer):
    restaurant_id = serializers.CharField(max_length=255)
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(allow_blank=True, required=False, default="")
    scheduled_date = serializers.DateTimeField()
    max_participants = serializers.IntegerField(min_value=lifecycle.MIN_PARTICIPANTS)


class InviteSerializer(serializers.Serializer):
    to_user_id = serializers.UUIDField()


class InvitationSerializer(serializers.ModelSerializer):
    group_dining_id = serializers.UUIDField(read_only=True)
    from_user_id = serializers.UUIDField(read_only=True)
    to_user_id = serializers.UUIDField(read_only=True)
    restaurant_id = serializers.CharField(read_only=True)

    class Meta:
        model = GroupDiningInvitation
        fields = [
            'id',
            'group_dining_id',
            'from_user_id',
            'to_user_id',
            'from_user_name',
            'from_user_photo_url',
            'group_title',
            'restaurant_id',
            'restaurant_name',
            'scheduled_date',
            'status',
            'sent_at',
            'responded_at',
        ]
        read_only_fields = fields


class InvitationResponseSerializer(serializers.Serializer):
    accept = serializers.BooleanField()
