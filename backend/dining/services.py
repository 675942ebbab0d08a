"""
Group dining service: read the event, decide with dining.lifecycle, write back.

Every mutation runs in one transaction with the event row locked, so two
concurrent joins to a nearly full event cannot both succeed.
"""
import logging
import uuid
from datetime import timedelta
from typing import List

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.display import materialize_display_copy
from core.errors import IneligibleOperationError, NotFoundError
from core.results import OperationResult, guarded
from notifications import messages
from notifications.services import get_dispatcher
from restaurants.services import RestaurantService
from user.models import UserProfile

from . import lifecycle
from .models import GroupDining, GroupDiningInvitation

logger = logging.getLogger(__name__)

UPCOMING_LIMIT = 20


class GroupDiningService:

    def __init__(self, dispatcher=None):
        self.dispatcher = dispatcher or get_dispatcher()

    @staticmethod
    def get_event(event_id, lock: bool = False) -> GroupDining:
        queryset = GroupDining.objects.select_for_update() if lock else GroupDining.objects.all()
        try:
            return queryset.get(pk=event_id)
        except (GroupDining.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Group dining not found", reason='EVENT_NOT_FOUND')

    @staticmethod
    def get_invitation(invitation_id, lock: bool = False) -> GroupDiningInvitation:
        queryset = GroupDiningInvitation.objects.select_for_update() if lock else GroupDiningInvitation.objects.all()
        try:
            return queryset.get(pk=invitation_id)
        except (GroupDiningInvitation.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Invitation not found", reason='INVITATION_NOT_FOUND')

    @guarded("create_event")
    def create_event(self, organizer: UserProfile, restaurant_id: str, title: str, scheduled_date,
                     max_participants: int, description: str = "", now=None) -> GroupDining:
        now = now or timezone.now()
        organizer_id = str(organizer.pk)
        snapshot = lifecycle.new_event(organizer_id, scheduled_date, max_participants, now)
        restaurant = RestaurantService.get_restaurant(restaurant_id)

        with transaction.atomic():
            event = GroupDining.objects.create(
                organizer=organizer,
                title=title,
                description=description,
                scheduled_date=scheduled_date,
                max_participants=max_participants,
                status=snapshot.status,
                **materialize_display_copy(restaurant, organizer, user_prefix='organizer', include_address=True)
            )
            event.participants.add(*snapshot.participants)

        logger.info(f"Group dining {event.pk} created by {organizer_id} at {restaurant.place_id}")
        return event

    @guarded("event_detail")
    def event_detail(self, event_id) -> GroupDining:
        return self.get_event(event_id)

    @guarded("events_for_user")
    def events_for_user(self, profile: UserProfile) -> List[GroupDining]:
        return list(
            GroupDining.objects.filter(participants=profile)
            .order_by('scheduled_date')
            .prefetch_related('participants')
        )

    @guarded("upcoming_events")
    def upcoming_events(self, now=None, limit: int = UPCOMING_LIMIT) -> List[GroupDining]:
        now = now or timezone.now()
        return list(
            GroupDining.objects.filter(scheduled_date__gt=now, status=GroupDining.Status.ACTIVE)
            .order_by('scheduled_date')
            .prefetch_related('participants')[:limit]
        )

    @guarded("events_for_restaurant")
    def events_for_restaurant(self, restaurant_id: str, now=None) -> List[GroupDining]:
        now = now or timezone.now()
        return list(
            GroupDining.objects.filter(
                restaurant_id=restaurant_id,
                scheduled_date__gt=now,
                status=GroupDining.Status.ACTIVE,
            )
            .order_by('scheduled_date')
            .prefetch_related('participants')
        )

    def _transition(self, event_id, step, now) -> GroupDining:
        with transaction.atomic():
            event = self.get_event(event_id, lock=True)
            before = event.snapshot()
            after = step(before, now)
            event.write_back(before, after)
        return event

    @guarded("join_event")
    def join_event(self, profile: UserProfile, event_id, now=None) -> GroupDining:
        user_id = str(profile.pk)
        return self._transition(event_id, lambda s, t: lifecycle.join(s, user_id, t), now or timezone.now())

    @guarded("leave_event")
    def leave_event(self, profile: UserProfile, event_id, now=None) -> GroupDining:
        user_id = str(profile.pk)
        return self._transition(event_id, lambda s, t: lifecycle.leave(s, user_id, t), now or timezone.now())

    @guarded("cancel_event")
    def cancel_event(self, profile: UserProfile, event_id, now=None) -> GroupDining:
        user_id = str(profile.pk)
        event = self._transition(event_id, lambda s, t: lifecycle.cancel(s, user_id, t), now or timezone.now())
        logger.info(f"Group dining {event.pk} cancelled")
        return event

    @guarded("complete_event")
    def complete_event(self, profile: UserProfile, event_id, now=None) -> GroupDining:
        user_id = str(profile.pk)
        return self._transition(event_id, lambda s, t: lifecycle.complete(s, user_id, t), now or timezone.now())

    @guarded("invite")
    def invite(self, profile: UserProfile, event_id, to_profile_id) -> GroupDiningInvitation:
        try:
            invitee = UserProfile.objects.select_related('user').get(pk=uuid.UUID(str(to_profile_id)))
        except (UserProfile.DoesNotExist, ValueError):
            raise NotFoundError("User not found", reason='USER_NOT_FOUND')

        with transaction.atomic():
            event = self.get_event(event_id, lock=True)
            # invited_users only holds pending invitees
            lifecycle.invite(event.snapshot(), str(profile.pk), str(invitee.pk))

            invitation = GroupDiningInvitation.objects.create(
                group_dining=event,
                from_user=profile,
                to_user=invitee,
                group_title=event.title,
                scheduled_date=event.scheduled_date,
                **materialize_display_copy(event.restaurant, profile, user_prefix='from_user')
            )

        self.dispatcher.notify(
            invitee,
            messages.group_dining_invitation(profile.name, event.title, event.restaurant_name, event.scheduled_date),
            actor=profile,
            target_object_id=event.pk,
        )
        return invitation

    @guarded("respond_invitation")
    def respond_invitation(self, profile: UserProfile, invitation_id, accept: bool, now=None):
        """
        Answers an invitation. Accepting also joins the event; when that join is
        refused the invitation stays accepted and the join's reason is returned
        as an ineligible result.
        """
        now = now or timezone.now()
        join_refusal = None
        with transaction.atomic():
            invitation = self.get_invitation(invitation_id, lock=True)
            if invitation.to_user_id != profile.pk:
                raise IneligibleOperationError("Only the invitee can answer this invitation", reason='NOT_INVITEE')

            invitation.status = lifecycle.respond(invitation.status, accept)
            invitation.responded_at = now
            invitation.save(update_fields=['status', 'responded_at'])

            if accept:
                event = self.get_event(invitation.group_dining_id, lock=True)
                before = event.snapshot()
                reason = lifecycle.join_block_reason(before, str(profile.pk), now)
                if reason and reason != 'ALREADY_PARTICIPANT':
                    join_refusal = reason
                elif reason is None:
                    event.write_back(before, lifecycle.join(before, str(profile.pk), now))

        if join_refusal:
            logger.warning(f"Invitation {invitation.pk} accepted but join refused: {join_refusal}")
            return OperationResult.ineligible(
                join_refusal, "Invitation accepted but the group dining could not be joined"
            )
        return invitation

    @guarded("pending_invitations")
    def pending_invitations(self, profile: UserProfile) -> List[GroupDiningInvitation]:
        return list(GroupDiningInvitation.objects.filter(
            to_user=profile, status=GroupDiningInvitation.Status.PENDING
        ).order_by('-sent_at'))

    @guarded("send_reminders")
    def send_reminders(self, now=None) -> int:
        """
        Reminds participants of active events starting within the reminder
        window. Each event is reminded once.
        """
        now = now or timezone.now()
        horizon = now + timedelta(hours=settings.GROUP_DINING_REMINDER_HOURS)
        due = GroupDining.objects.filter(
            status=GroupDining.Status.ACTIVE,
            reminder_sent_at__isnull=True,
            scheduled_date__gt=now,
            scheduled_date__lte=horizon,
        ).values_list('pk', flat=True)

        reminded = 0
        for event_id in list(due):
            with transaction.atomic():
                event = GroupDining.objects.select_for_update().get(pk=event_id)
                if event.reminder_sent_at is not None:
                    continue
                event.reminder_sent_at = now
                event.save(update_fields=['reminder_sent_at'])
            message = messages.group_dining_reminder(event.title, event.restaurant_name, event.scheduled_date)
            self.dispatcher.notify_many(
                event.participants.select_related('user'), message, target_object_id=event.pk
            )
            reminded += 1

        logger.info(f"Sent reminders for {reminded} group dinings")
        return reminded
