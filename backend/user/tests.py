from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import TestCase as PlainTestCase
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.results import ErrorKind
from notifications.models import Notification, NotificationVerb
from notifications.services import NotificationDispatcher
from restaurants.models import Restaurant
from .models import FriendRequest, Friendship, UserProfile
from .selection import SelectedRestaurant, is_active_at, is_expired, make_selection
from .services import UserService

User = get_user_model()


def silent_dispatcher():
    push = mock.Mock()
    push.send_to_user.return_value = 0
    return NotificationDispatcher(push_service=push)


class SelectionExpiryTests(PlainTestCase):
    def setUp(self):
        self.t0 = datetime(2024, 5, 1, 18, 0, tzinfo=dt_timezone.utc)

    def test_window_is_twelve_hours_by_default(self):
        selection = make_selection("r1", "Ciya", self.t0)
        self.assertEqual(selection.selected_at, self.t0)
        self.assertEqual(selection.expires_at, self.t0 + timedelta(hours=12))

    def test_not_expired_one_minute_before_the_end(self):
        selection = make_selection("r1", "Ciya", self.t0)
        self.assertFalse(is_expired(selection, self.t0 + timedelta(hours=11, minutes=59)))

    def test_expired_one_minute_after_the_end(self):
        selection = make_selection("r1", "Ciya", self.t0)
        self.assertTrue(is_expired(selection, self.t0 + timedelta(hours=12, minutes=1)))

    def test_exact_end_is_still_valid(self):
        selection = make_selection("r1", "Ciya", self.t0)
        self.assertFalse(is_expired(selection, selection.expires_at))
        self.assertTrue(is_expired(selection, selection.expires_at + timedelta(microseconds=1)))

    def test_custom_window(self):
        selection = make_selection("r1", "Ciya", self.t0, window=timedelta(hours=1))
        self.assertTrue(is_expired(selection, self.t0 + timedelta(hours=2)))

    def test_is_active_at(self):
        selection = make_selection("r1", "Ciya", self.t0)
        self.assertTrue(is_active_at(selection, "r1", self.t0))
        self.assertFalse(is_active_at(selection, "r2", self.t0))
        self.assertFalse(is_active_at(None, "r1", self.t0))
        self.assertFalse(is_active_at(selection, "r1", self.t0 + timedelta(days=1)))


class UserProfileTests(TestCase):
    def setUp(self):
        self.user1 = User.objects.create_user(username='user1', password='password123')
        self.user2 = User.objects.create_user(username='user2', password='password123')
        self.profile1 = self.user1.profile
        self.profile2 = self.user2.profile

    def test_profile_created_with_user(self):
        self.assertEqual(UserProfile.objects.count(), 2)
        self.assertEqual(self.profile1.name, 'user1')

    def test_add_friend_is_symmetric(self):
        self.profile1.add_friend(self.profile2)

        self.profile1.refresh_from_db()
        self.profile2.refresh_from_db()

        self.assertEqual(self.profile1.friends_count, 1)
        self.assertEqual(self.profile2.friends_count, 1)
        self.assertTrue(self.profile1.is_friends_with(self.profile2))
        self.assertTrue(self.profile2.is_friends_with(self.profile1))
        self.assertEqual(Friendship.objects.count(), 2)

    def test_remove_friend(self):
        self.profile1.add_friend(self.profile2)
        self.profile2.remove_friend(self.profile1)

        self.profile1.refresh_from_db()
        self.profile2.refresh_from_db()

        self.assertEqual(self.profile1.friends_count, 0)
        self.assertEqual(self.profile2.friends_count, 0)
        self.assertFalse(Friendship.objects.exists())

    def test_cannot_befriend_self(self):
        self.profile1.add_friend(self.profile1)
        self.profile1.refresh_from_db()
        self.assertEqual(self.profile1.friends_count, 0)

    def test_adding_twice_does_not_double_count(self):
        self.profile1.add_friend(self.profile2)
        self.profile1.add_friend(self.profile2)
        self.profile1.refresh_from_db()
        self.assertEqual(self.profile1.friends_count, 1)
        self.assertEqual(Friendship.objects.count(), 2)

    def test_is_online(self):
        now = timezone.now()
        self.profile1.last_seen = now - timedelta(minutes=4)
        self.assertTrue(self.profile1.is_online(now))
        self.profile1.last_seen = now - timedelta(minutes=6)
        self.assertFalse(self.profile1.is_online(now))

    def test_store_and_read_selection(self):
        now = timezone.now()
        self.profile1.store_selection(make_selection("r1", "Ciya", now))
        self.profile1.refresh_from_db()
        self.assertEqual(self.profile1.selection, SelectedRestaurant("r1", "Ciya", now, now + timedelta(hours=12)))

        self.profile1.store_selection(None)
        self.profile1.refresh_from_db()
        self.assertIsNone(self.profile1.selection)


class UserServiceTests(TestCase):
    def setUp(self):
        self.service = UserService(dispatcher=silent_dispatcher())
        self.alice = User.objects.create_user(username='alice', email='alice@example.com', password='x').profile
        self.bob = User.objects.create_user(username='bob', email='bob@example.com', password='x').profile
        self.carol = User.objects.create_user(username='carol', email='carol@example.com', password='x').profile
        self.restaurant = Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)
        Restaurant.objects.create(place_id='r2', name="Kanaat", latitude=41.02, longitude=29.01)
        self.alice.add_friend(self.bob)
        self.alice.add_friend(self.carol)

    def test_select_restaurant_stores_selection_and_notifies_friends(self):
        now = timezone.now()
        result = self.service.select_restaurant(self.bob, 'r1', now)

        self.assertTrue(result.ok)
        self.assertEqual(result.value.restaurant_name, "Ciya")
        self.assertEqual(result.value.expires_at, now + timedelta(hours=12))
        self.bob.refresh_from_db()
        self.assertEqual(self.bob.selected_restaurant_id, 'r1')

        notification = Notification.objects.get(recipient=self.alice)
        self.assertEqual(notification.verb, NotificationVerb.FRIEND_ACTIVITY)
        self.assertEqual(notification.body, "bob is now dining at Ciya")
        self.assertEqual(notification.get_deep_link(), 'socialeats://restaurant/r1')

    def test_select_unknown_restaurant_is_not_found(self):
        result = self.service.select_restaurant(self.bob, 'missing')
        self.assertEqual(result.error_kind, ErrorKind.NOT_FOUND)

    def test_expired_selection_is_cleared_on_read(self):
        t0 = timezone.now() - timedelta(hours=13)
        self.service.select_restaurant(self.bob, 'r1', t0)

        result = self.service.get_active_selection(self.bob)

        self.assertTrue(result.ok)
        self.assertIsNone(result.value)
        self.bob.refresh_from_db()
        self.assertEqual(self.bob.selected_restaurant_id, '')
        self.assertIsNone(self.bob.selection_expires_at)

    def test_active_selection_is_returned(self):
        self.service.select_restaurant(self.bob, 'r1')
        result = self.service.get_active_selection(self.bob)
        self.assertEqual(result.value.restaurant_id, 'r1')

    def test_friends_dining_now_skips_expired_and_empty(self):
        now = timezone.now()
        self.service.select_restaurant(self.bob, 'r1', now - timedelta(hours=1))
        self.service.select_restaurant(self.carol, 'r2', now - timedelta(hours=13))

        result = self.service.friends_dining_now(self.alice, now)

        self.assertEqual([p.pk for p in result.value], [self.bob.pk])

    def test_friends_at_restaurant(self):
        now = timezone.now()
        self.service.select_restaurant(self.bob, 'r1', now)
        self.service.select_restaurant(self.carol, 'r2', now)

        result = self.service.friends_at_restaurant(self.alice, 'r2', now)

        self.assertEqual([p.pk for p in result.value], [self.carol.pk])

    def test_clear_selection(self):
        self.service.select_restaurant(self.bob, 'r1')
        self.assertTrue(self.service.clear_selection(self.bob).ok)
        self.assertIsNone(self.service.get_active_selection(self.bob).value)

    def test_search_excludes_self_and_friends(self):
        dave = User.objects.create_user(username='dave', email='dave@example.com', password='x').profile

        by_email = self.service.search_users(self.alice, 'dave@example.com')
        self.assertEqual([p.pk for p in by_email.value], [dave.pk])

        by_friend_email = self.service.search_users(self.alice, 'bob@example.com')
        self.assertEqual(by_friend_email.value, [])

        by_own_name = self.service.search_users(self.alice, 'alice')
        self.assertEqual(by_own_name.value, [])

    def test_search_rejects_short_query(self):
        result = self.service.search_users(self.alice, 'a')
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)

    def test_friend_request_flow(self):
        dave = User.objects.create_user(username='dave', password='x').profile

        sent = self.service.send_friend_request(dave, self.bob.pk)
        self.assertTrue(sent.ok)
        self.assertTrue(Notification.objects.filter(
            recipient=self.bob, verb=NotificationVerb.FRIEND_REQUEST
        ).exists())

        answered = self.service.respond_friend_request(self.bob, sent.value.pk, accept=True)

        self.assertTrue(answered.ok)
        self.assertEqual(answered.value.status, FriendRequest.Status.ACCEPTED)
        self.assertTrue(dave.is_friends_with(self.bob))

    def test_only_one_pending_request_per_pair(self):
        dave = User.objects.create_user(username='dave', password='x').profile
        self.service.send_friend_request(dave, self.bob.pk)

        again = self.service.send_friend_request(dave, self.bob.pk)
        reverse_direction = self.service.send_friend_request(self.bob, dave.pk)

        self.assertEqual(again.error_kind, ErrorKind.INELIGIBLE)
        self.assertEqual(again.reason, 'REQUEST_PENDING')
        self.assertEqual(reverse_direction.reason, 'REQUEST_PENDING')

    def test_request_to_friend_or_self_is_rejected(self):
        self.assertEqual(self.service.send_friend_request(self.alice, self.bob.pk).reason, 'ALREADY_FRIENDS')
        self.assertEqual(self.service.send_friend_request(self.alice, self.alice.pk).error_kind, ErrorKind.VALIDATION)

    def test_only_recipient_can_answer(self):
        dave = User.objects.create_user(username='dave', password='x').profile
        sent = self.service.send_friend_request(dave, self.bob.pk)

        result = self.service.respond_friend_request(self.carol, sent.value.pk, accept=True)

        self.assertEqual(result.reason, 'NOT_INVITEE')

    def test_declined_request_cannot_be_answered_again(self):
        dave = User.objects.create_user(username='dave', password='x').profile
        sent = self.service.send_friend_request(dave, self.bob.pk)
        self.service.respond_friend_request(self.bob, sent.value.pk, accept=False)

        result = self.service.respond_friend_request(self.bob, sent.value.pk, accept=True)

        self.assertEqual(result.reason, 'ALREADY_RESPONDED')
        self.assertFalse(dave.is_friends_with(self.bob))

    def test_remove_friend(self):
        result = self.service.remove_friend(self.alice, self.bob.pk)
        self.assertTrue(result.ok)
        self.assertFalse(self.alice.is_friends_with(self.bob))
        self.assertEqual(self.service.remove_friend(self.alice, self.bob.pk).reason, 'NOT_FRIENDS')


class UserAPITests(APITestCase):
    def setUp(self):
        self.user1 = User.objects.create_user(username='api_user1', password='password123')
        self.profile1 = self.user1.profile
        self.user2 = User.objects.create_user(username='api_user2', password='password123')
        self.profile2 = self.user2.profile
        Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)
        self.client.force_authenticate(user=self.user1)

    def test_get_me(self):
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'api_user1')
        self.assertTrue(response.data['is_online'])

    def test_update_display_name(self):
        response = self.client.patch(reverse('me'), {'display_name': 'Ayse'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.profile1.refresh_from_db()
        self.assertEqual(self.profile1.display_name, 'Ayse')

    def test_send_and_accept_friend_request(self):
        response = self.client.post(reverse('friend-requests'), {'to_user_id': str(self.profile2.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.force_authenticate(user=self.user2)
        url = reverse('friend-request-respond', args=[response.data['id']])
        response = self.client.post(url, {'accept': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(self.profile1.is_friends_with(self.profile2))

    def test_answering_someone_elses_request_is_forbidden(self):
        other = User.objects.create_user(username='api_user3', password='password123').profile
        request = FriendRequest.objects.create(from_user=other, to_user=self.profile2)

        url = reverse('friend-request-respond', args=[request.id])
        response = self.client.post(url, {'accept': True}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['reason'], 'NOT_INVITEE')

    def test_select_and_clear_restaurant(self):
        response = self.client.post(reverse('selection'), {'restaurant_id': 'r1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['selection']['restaurant_name'], "Ciya")

        response = self.client.get(reverse('selection'))
        self.assertEqual(response.data['selection']['restaurant_id'], 'r1')

        response = self.client.delete(reverse('selection'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.get(reverse('selection'))
        self.assertIsNone(response.data['selection'])

    def test_friends_dining_now_endpoint(self):
        self.profile1.add_friend(self.profile2)
        self.profile2.store_selection(make_selection('r1', 'Ciya', timezone.now()))

        response = self.client.get(reverse('friends-dining-now'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['selected_restaurant']['restaurant_id'], 'r1')

    def test_friends_at_restaurant_endpoint(self):
        self.profile1.add_friend(self.profile2)
        self.profile2.store_selection(make_selection('r1', 'Ciya', timezone.now()))

        response = self.client.get(reverse('friends-at-restaurant', args=['r1']))

        self.assertEqual(len(response.data), 1)

    def test_remove_friend_endpoint(self):
        self.profile1.add_friend(self.profile2)
        response = self.client.delete(reverse('remove-friend', args=[self.profile2.id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(self.profile1.is_friends_with(self.profile2))

    def test_remove_non_friend_is_conflict(self):
        response = self.client.delete(reverse('remove-friend', args=[self.profile2.id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
