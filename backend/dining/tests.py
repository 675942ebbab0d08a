from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import TestCase as PlainTestCase
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import connection
from django.db.models.query import QuerySet
from django.test import TestCase, skipUnlessDBFeature
from django.test.utils import CaptureQueriesContext
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.errors import IneligibleOperationError, ValidationError
from core.results import ErrorKind
from notifications.models import Notification, NotificationVerb
from notifications.services import NotificationDispatcher
from restaurants.models import Restaurant
from . import lifecycle
from .models import GroupDining, GroupDiningInvitation
from .services import GroupDiningService

User = get_user_model()


def silent_dispatcher():
    push = mock.Mock()
    push.send_to_user.return_value = 0
    return NotificationDispatcher(push_service=push)


@contextmanager
def recorded_row_locks():
    """Collects (model, open atomic blocks) for every select_for_update() call."""
    locks = []
    original = QuerySet.select_for_update

    def record(queryset, *args, **kwargs):
        locks.append((queryset.model, len(connection.atomic_blocks)))
        return original(queryset, *args, **kwargs)

    with mock.patch.object(QuerySet, 'select_for_update', autospec=True, side_effect=record):
        yield locks


class LifecycleTests(PlainTestCase):
    def setUp(self):
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=dt_timezone.utc)
        self.when = self.now + timedelta(days=2)

    def _event(self, max_participants=2):
        return lifecycle.new_event("u1", self.when, max_participants, self.now)

    def test_organizer_is_first_participant(self):
        event = self._event()
        self.assertEqual(event.participants, frozenset(["u1"]))
        self.assertEqual(event.status, lifecycle.ACTIVE)
        self.assertEqual(lifecycle.available_spots(event), 1)

    def test_two_seat_scenario(self):
        event = lifecycle.join(self._event(), "u2", self.now)
        self.assertEqual(event.participants, frozenset(["u1", "u2"]))
        self.assertTrue(lifecycle.is_full(event))
        self.assertFalse(lifecycle.can_join(event, "u3", self.now))
        self.assertFalse(lifecycle.can_leave(event, "u1"))

        event = lifecycle.leave(event, "u2", self.now)
        self.assertEqual(event.participants, frozenset(["u1"]))
        self.assertFalse(lifecycle.is_full(event))

    def test_full_after_max_distinct_joins(self):
        event = self._event(max_participants=5)
        for user_id in ["u2", "u3", "u4", "u5"]:
            event = lifecycle.join(event, user_id, self.now)
        self.assertTrue(lifecycle.is_full(event))
        self.assertEqual(lifecycle.available_spots(event), 0)
        self.assertEqual(lifecycle.join_block_reason(event, "u6", self.now), 'EVENT_FULL')

    def test_available_spots_never_negative(self):
        event = lifecycle.DiningSnapshot(
            organizer_id="u1",
            scheduled_date=self.when,
            max_participants=2,
            participants=frozenset(["u1", "u2", "u3"]),
        )
        self.assertEqual(lifecycle.available_spots(event), 0)

    def test_expiry_boundary(self):
        event = self._event()
        self.assertFalse(lifecycle.is_expired(event, self.when - timedelta(seconds=1)))
        self.assertFalse(lifecycle.is_expired(event, self.when))
        self.assertTrue(lifecycle.is_expired(event, self.when + timedelta(microseconds=1)))

    def test_join_reason_order(self):
        event = lifecycle.join(self._event(), "u2", self.now)
        # Participant check wins over capacity
        self.assertEqual(lifecycle.join_block_reason(event, "u2", self.now), 'ALREADY_PARTICIPANT')

        roomy = self._event(max_participants=4)
        self.assertEqual(
            lifecycle.join_block_reason(roomy, "u2", self.when + timedelta(hours=1)), 'EVENT_EXPIRED'
        )
        cancelled = lifecycle.cancel(roomy, "u1", self.now)
        self.assertEqual(lifecycle.join_block_reason(cancelled, "u2", self.now), 'EVENT_NOT_ACTIVE')

    def test_join_raises_with_reason(self):
        event = lifecycle.join(self._event(), "u2", self.now)
        with self.assertRaises(IneligibleOperationError) as ctx:
            lifecycle.join(event, "u3", self.now)
        self.assertEqual(ctx.exception.reason, 'EVENT_FULL')

    def test_organizer_never_leaves(self):
        event = self._event(max_participants=4)
        self.assertFalse(lifecycle.can_leave(event, "u1"))
        self.assertFalse(lifecycle.can_leave(lifecycle.cancel(event, "u1", self.now), "u1"))
        self.assertEqual(lifecycle.leave_block_reason(event, "u1"), 'ORGANIZER_CANNOT_LEAVE')

    def test_non_participant_cannot_leave(self):
        self.assertEqual(lifecycle.leave_block_reason(self._event(), "u9"), 'NOT_PARTICIPANT')

    def test_membership_is_frozen_after_cancel(self):
        event = lifecycle.join(self._event(max_participants=4), "u2", self.now)
        event = lifecycle.cancel(event, "u1", self.now)
        self.assertEqual(event.status, lifecycle.CANCELLED)
        self.assertFalse(lifecycle.can_leave(event, "u2"))
        self.assertFalse(lifecycle.can_join(event, "u3", self.now))

    def test_only_organizer_closes_event(self):
        event = lifecycle.join(self._event(max_participants=4), "u2", self.now)
        with self.assertRaises(IneligibleOperationError) as ctx:
            lifecycle.cancel(event, "u2", self.now)
        self.assertEqual(ctx.exception.reason, 'NOT_ORGANIZER')

        completed = lifecycle.complete(event, "u1", self.now)
        self.assertEqual(completed.status, lifecycle.COMPLETED)
        with self.assertRaises(IneligibleOperationError):
            lifecycle.cancel(completed, "u1", self.now)

    def test_invite_rules(self):
        event = self._event(max_participants=4)
        self.assertIsNone(lifecycle.invite(event, "u1", "u2"))
        self.assertEqual(event.invited_users, frozenset())

        for from_id, to_id, reason in [
            ("u7", "u3", 'NOT_PARTICIPANT'),
            ("u1", "u1", 'ALREADY_PARTICIPANT'),
        ]:
            with self.assertRaises(IneligibleOperationError) as ctx:
                lifecycle.invite(event, from_id, to_id)
            self.assertEqual(ctx.exception.reason, reason)

        pending = replace(event, invited_users=frozenset(["u2"]))
        with self.assertRaises(IneligibleOperationError) as ctx:
            lifecycle.invite(pending, "u1", "u2")
        self.assertEqual(ctx.exception.reason, 'ALREADY_INVITED')

        cancelled = lifecycle.cancel(event, "u1", self.now)
        with self.assertRaises(IneligibleOperationError) as ctx:
            lifecycle.invite(cancelled, "u1", "u3")
        self.assertEqual(ctx.exception.reason, 'EVENT_NOT_ACTIVE')

    def test_respond(self):
        self.assertEqual(lifecycle.respond(lifecycle.PENDING, True), lifecycle.ACCEPTED)
        self.assertEqual(lifecycle.respond(lifecycle.PENDING, False), lifecycle.DECLINED)
        with self.assertRaises(IneligibleOperationError):
            lifecycle.respond(lifecycle.DECLINED, True)

    def test_new_event_validation(self):
        with self.assertRaises(ValidationError):
            lifecycle.new_event("u1", self.when, 1, self.now)
        with self.assertRaises(ValidationError):
            lifecycle.new_event("u1", self.now - timedelta(minutes=1), 4, self.now)


class GroupDiningServiceTests(TestCase):
    def setUp(self):
        self.service = GroupDiningService(dispatcher=silent_dispatcher())
        self.alice = User.objects.create_user(username='alice', password='x').profile
        self.bob = User.objects.create_user(username='bob', password='x').profile
        self.carol = User.objects.create_user(username='carol', password='x').profile
        self.restaurant = Restaurant.objects.create(
            place_id='r1', name="Ciya", address="Caferaga 43", latitude=41.0, longitude=29.0
        )
        self.when = timezone.now() + timedelta(days=1)

    def _create(self, max_participants=2, **kwargs):
        result = self.service.create_event(self.alice, 'r1', "Friday kebab", self.when, max_participants, **kwargs)
        self.assertTrue(result.ok, result.message)
        return result.value

    def test_create_copies_display_fields(self):
        event = self._create(description="Bring friends")

        self.assertEqual(event.restaurant_name, "Ciya")
        self.assertEqual(event.restaurant_address, "Caferaga 43")
        self.assertEqual(event.organizer_name, "alice")
        self.assertEqual(event.status, GroupDining.Status.ACTIVE)
        self.assertEqual(list(event.participants.all()), [self.alice])

    def test_create_validation(self):
        too_small = self.service.create_event(self.alice, 'r1', "Solo", self.when, 1)
        self.assertEqual(too_small.reason, 'INVALID_CAPACITY')

        past = self.service.create_event(self.alice, 'r1', "Late", timezone.now() - timedelta(hours=1), 4)
        self.assertEqual(past.reason, 'DATE_IN_PAST')

        unknown = self.service.create_event(self.alice, 'missing', "Where", self.when, 4)
        self.assertEqual(unknown.error_kind, ErrorKind.NOT_FOUND)

    def test_join_until_full(self):
        event = self._create()

        joined = self.service.join_event(self.bob, event.pk)
        self.assertTrue(joined.ok)

        refused = self.service.join_event(self.carol, event.pk)
        self.assertEqual(refused.error_kind, ErrorKind.INELIGIBLE)
        self.assertEqual(refused.reason, 'EVENT_FULL')
        self.assertEqual(event.participants.count(), 2)

    def test_join_twice(self):
        event = self._create(max_participants=4)
        self.service.join_event(self.bob, event.pk)
        self.assertEqual(self.service.join_event(self.bob, event.pk).reason, 'ALREADY_PARTICIPANT')

    def test_join_after_scheduled_date(self):
        event = self._create(max_participants=4)
        result = self.service.join_event(self.bob, event.pk, now=self.when + timedelta(hours=1))
        self.assertEqual(result.reason, 'EVENT_EXPIRED')

    def test_unknown_event(self):
        result = self.service.join_event(self.bob, '00000000-0000-0000-0000-000000000000')
        self.assertEqual(result.error_kind, ErrorKind.NOT_FOUND)
        self.assertEqual(result.reason, 'EVENT_NOT_FOUND')

    def test_leave(self):
        event = self._create(max_participants=4)
        self.service.join_event(self.bob, event.pk)

        self.assertTrue(self.service.leave_event(self.bob, event.pk).ok)
        self.assertEqual(list(event.participants.all()), [self.alice])
        self.assertEqual(self.service.leave_event(self.alice, event.pk).reason, 'ORGANIZER_CANNOT_LEAVE')

    def test_cancel_is_organizer_only(self):
        event = self._create(max_participants=4)
        self.service.join_event(self.bob, event.pk)

        self.assertEqual(self.service.cancel_event(self.bob, event.pk).reason, 'NOT_ORGANIZER')

        cancelled = self.service.cancel_event(self.alice, event.pk)
        self.assertTrue(cancelled.ok)
        event.refresh_from_db()
        self.assertEqual(event.status, GroupDining.Status.CANCELLED)
        self.assertEqual(self.service.leave_event(self.bob, event.pk).reason, 'EVENT_NOT_ACTIVE')
        self.assertEqual(self.service.join_event(self.carol, event.pk).reason, 'EVENT_NOT_ACTIVE')

    def test_complete(self):
        event = self._create()
        self.assertTrue(self.service.complete_event(self.alice, event.pk).ok)
        event.refresh_from_db()
        self.assertEqual(event.status, GroupDining.Status.COMPLETED)
        self.assertEqual(self.service.cancel_event(self.alice, event.pk).reason, 'EVENT_NOT_ACTIVE')

    def test_invite_creates_pending_invitation_and_notifies(self):
        event = self._create(max_participants=4)

        result = self.service.invite(self.alice, event.pk, self.bob.pk)

        self.assertTrue(result.ok)
        invitation = result.value
        self.assertEqual(invitation.status, GroupDiningInvitation.Status.PENDING)
        self.assertEqual(invitation.group_title, "Friday kebab")
        self.assertEqual(invitation.from_user_name, "alice")
        self.assertEqual(invitation.restaurant_id, 'r1')
        self.assertEqual(invitation.restaurant_name, "Ciya")
        self.assertEqual(event.snapshot().invited_users, frozenset([str(self.bob.pk)]))
        self.assertEqual(list(event.participants.all()), [self.alice])

        notification = Notification.objects.get(recipient=self.bob)
        self.assertEqual(notification.verb, NotificationVerb.GROUP_DINING_INVITATION)
        self.assertTrue(notification.body.startswith("alice invited you to Friday kebab at Ciya on "))
        self.assertEqual(notification.get_deep_link(), f'socialeats://dining/{event.pk}')

    def test_invite_rules(self):
        event = self._create(max_participants=4)
        self.service.invite(self.alice, event.pk, self.bob.pk)

        self.assertEqual(self.service.invite(self.alice, event.pk, self.bob.pk).reason, 'ALREADY_INVITED')
        self.assertEqual(self.service.invite(self.carol, event.pk, self.bob.pk).reason, 'NOT_PARTICIPANT')
        self.assertEqual(self.service.invite(self.alice, event.pk, self.alice.pk).reason, 'ALREADY_PARTICIPANT')
        self.assertEqual(
            self.service.invite(self.alice, event.pk, '00000000-0000-0000-0000-000000000000').reason,
            'USER_NOT_FOUND'
        )
        self.assertEqual(GroupDiningInvitation.objects.count(), 1)

    def test_accepting_joins_the_event(self):
        event = self._create(max_participants=4)
        invitation = self.service.invite(self.alice, event.pk, self.bob.pk).value

        result = self.service.respond_invitation(self.bob, invitation.pk, accept=True)

        self.assertTrue(result.ok)
        self.assertEqual(result.value.status, GroupDiningInvitation.Status.ACCEPTED)
        self.assertIn(self.bob, event.participants.all())
        self.assertEqual(self.service.pending_invitations(self.bob).value, [])

    def test_accepting_a_full_event_reports_the_join_failure(self):
        event = self._create(max_participants=2)
        invitation = self.service.invite(self.alice, event.pk, self.bob.pk).value
        self.service.join_event(self.carol, event.pk)

        result = self.service.respond_invitation(self.bob, invitation.pk, accept=True)

        self.assertEqual(result.error_kind, ErrorKind.INELIGIBLE)
        self.assertEqual(result.reason, 'EVENT_FULL')
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, GroupDiningInvitation.Status.ACCEPTED)
        self.assertNotIn(self.bob, event.participants.all())

    def test_decline(self):
        event = self._create(max_participants=4)
        invitation = self.service.invite(self.alice, event.pk, self.bob.pk).value

        result = self.service.respond_invitation(self.bob, invitation.pk, accept=False)

        self.assertEqual(result.value.status, GroupDiningInvitation.Status.DECLINED)
        self.assertNotIn(self.bob, event.participants.all())
        again = self.service.respond_invitation(self.bob, invitation.pk, accept=True)
        self.assertEqual(again.reason, 'ALREADY_RESPONDED')

    def test_declined_user_can_be_invited_again(self):
        event = self._create(max_participants=4)
        first = self.service.invite(self.alice, event.pk, self.bob.pk).value
        self.service.respond_invitation(self.bob, first.pk, accept=False)

        again = self.service.invite(self.alice, event.pk, self.bob.pk)

        self.assertTrue(again.ok, again.message)
        self.assertEqual(again.value.status, GroupDiningInvitation.Status.PENDING)
        self.assertEqual(GroupDiningInvitation.objects.filter(to_user=self.bob).count(), 2)

    def test_user_who_left_can_be_invited_again(self):
        event = self._create(max_participants=4)
        invitation = self.service.invite(self.alice, event.pk, self.bob.pk).value
        self.service.respond_invitation(self.bob, invitation.pk, accept=True)
        self.service.leave_event(self.bob, event.pk)

        self.assertTrue(self.service.invite(self.alice, event.pk, self.bob.pk).ok)

    def test_mutations_lock_the_event_inside_a_transaction(self):
        event = self._create(max_participants=4)
        baseline = len(connection.atomic_blocks)

        for call in [
            lambda: self.service.join_event(self.bob, event.pk),
            lambda: self.service.invite(self.alice, event.pk, self.carol.pk),
            lambda: self.service.leave_event(self.bob, event.pk),
        ]:
            with recorded_row_locks() as locks:
                self.assertTrue(call().ok)
            self.assertIn(GroupDining, [model for model, _ in locks])
            self.assertTrue(all(depth > baseline for _, depth in locks))

    @skipUnlessDBFeature('has_select_for_update')
    def test_join_reads_the_event_for_update(self):
        event = self._create(max_participants=4)
        with CaptureQueriesContext(connection) as ctx:
            self.service.join_event(self.bob, event.pk)
        self.assertTrue(any(
            'FOR UPDATE' in q['sql'] and GroupDining._meta.db_table in q['sql'] for q in ctx.captured_queries
        ))

    def test_only_invitee_responds(self):
        event = self._create(max_participants=4)
        invitation = self.service.invite(self.alice, event.pk, self.bob.pk).value
        result = self.service.respond_invitation(self.carol, invitation.pk, accept=True)
        self.assertEqual(result.reason, 'NOT_INVITEE')

    def test_listings(self):
        now = timezone.now()
        mine = self._create(max_participants=4)
        cancelled = self._create(max_participants=4)
        self.service.cancel_event(self.alice, cancelled.pk)
        past_date = now - timedelta(hours=2)
        past = self.service.create_event(
            self.alice, 'r1', "Yesterday", past_date, 4, now=past_date - timedelta(days=1)
        ).value

        upcoming = self.service.upcoming_events(now).value
        at_restaurant = self.service.events_for_restaurant('r1', now).value
        alice_events = self.service.events_for_user(self.alice).value

        self.assertEqual([e.pk for e in upcoming], [mine.pk])
        self.assertEqual([e.pk for e in at_restaurant], [mine.pk])
        self.assertEqual({e.pk for e in alice_events}, {mine.pk, cancelled.pk, past.pk})
        self.assertEqual(self.service.events_for_user(self.bob).value, [])

    def test_reminders_are_sent_once(self):
        now = timezone.now()
        soon = self.service.create_event(
            self.alice, 'r1', "Lunch", now + timedelta(hours=1), 4, now=now
        ).value
        self.service.join_event(self.bob, soon.pk, now=now)
        self._create(max_participants=4)

        self.assertEqual(self.service.send_reminders(now).value, 1)
        self.assertEqual(self.service.send_reminders(now).value, 0)

        reminders = Notification.objects.filter(verb=NotificationVerb.GROUP_DINING_REMINDER)
        self.assertEqual({n.recipient_id for n in reminders}, {self.alice.pk, self.bob.pk})
        self.assertTrue(reminders.first().body.startswith("Don't forget about Lunch at Ciya at "))
        soon.refresh_from_db()
        self.assertEqual(soon.reminder_sent_at, now)


class GroupDiningAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='eater', password='password123')
        self.friend = User.objects.create_user(username='friend', password='password123')
        self.client.force_authenticate(user=self.user)
        Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)
        self.when = timezone.now() + timedelta(days=3)

    def _create(self, max_participants=2):
        return self.client.post(reverse('dining:group-dining-list'), {
            'restaurant_id': 'r1',
            'title': "Dinner",
            'scheduled_date': self.when.isoformat(),
            'max_participants': max_participants,
        }, format='json')

    def test_create_and_list(self):
        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['participants'], [str(self.user.profile.pk)])
        self.assertEqual(response.data['available_spots'], 1)
        self.assertFalse(response.data['is_full'])
        self.assertFalse(response.data['can_leave'])

        listed = self.client.get(reverse('dining:group-dining-list'))
        self.assertEqual(len(listed.data), 1)

    def test_create_requires_two_seats(self):
        response = self._create(max_participants=1)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_join_and_full(self):
        event_id = self._create().data['id']
        self.client.force_authenticate(user=self.friend)

        joined = self.client.post(reverse('dining:group-dining-join', args=[event_id]))
        self.assertEqual(joined.status_code, status.HTTP_200_OK)
        self.assertTrue(joined.data['is_full'])
        self.assertTrue(joined.data['can_leave'])

        again = self.client.post(reverse('dining:group-dining-join', args=[event_id]))
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['reason'], 'ALREADY_PARTICIPANT')

    def test_cancel_by_non_organizer_is_403(self):
        event_id = self._create().data['id']
        self.client.force_authenticate(user=self.friend)
        response = self.client.post(reverse('dining:group-dining-cancel', args=[event_id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invitation_flow(self):
        event_id = self._create(max_participants=4).data['id']

        invited = self.client.post(
            reverse('dining:group-dining-invite', args=[event_id]),
            {'to_user_id': str(self.friend.profile.pk)},
            format='json'
        )
        self.assertEqual(invited.status_code, status.HTTP_201_CREATED)

        self.client.force_authenticate(user=self.friend)
        pending = self.client.get(reverse('dining:invitation-list'))
        self.assertEqual(len(pending.data), 1)

        answered = self.client.post(
            reverse('dining:invitation-respond', args=[pending.data[0]['id']]), {'accept': True}, format='json'
        )
        self.assertEqual(answered.status_code, status.HTTP_200_OK)
        self.assertEqual(answered.data['status'], 'ACCEPTED')

        detail = self.client.get(reverse('dining:group-dining-detail', args=[event_id]))
        self.assertIn(str(self.friend.profile.pk), detail.data['participants'])

    def test_reminders_need_staff(self):
        response = self.client.post(reverse('dining:group-dining-reminders'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
