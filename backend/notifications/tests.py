from datetime import datetime, timezone as dt_timezone
from unittest import mock

from django.contrib.auth.models import User
from django.db.utils import IntegrityError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from notifications import messages
from notifications.models import Notification, DeviceToken, NotificationVerb, DevicePlatform
from notifications.services import NotificationDispatcher, PushService


class NotificationModelTest(TestCase):
    """Test cases for Notification model"""

    def setUp(self):
        """Set up test data"""
        self.user = User.objects.create_user(username='testuser', email='test@example.com', password='testpass123')
        self.actor_user = User.objects.create_user(username='actor', email='actor@example.com', password='testpass123')
        self.recipient_profile = self.user.profile
        self.actor_profile = self.actor_user.profile

    def _notification(self, verb, target='', actor=None):
        return Notification.objects.create(
            recipient=self.recipient_profile,
            actor=actor,
            verb=verb,
            title='Title',
            body='Body',
            target_object_id=target,
        )

    def test_mark_as_read(self):
        """Marking a notification as read persists the flag"""
        notification = self._notification(NotificationVerb.NEW_REVIEW, 'abc', actor=self.actor_profile)
        self.assertFalse(notification.is_read)

        notification.mark_as_read()
        notification.refresh_from_db()

        self.assertTrue(notification.is_read)

    def test_system_notification_without_actor(self):
        """System alerts have no actor"""
        notification = self._notification(NotificationVerb.SYSTEM_ALERT, 'maintenance')
        self.assertIsNone(notification.actor)

    def test_set_null_on_actor_delete(self):
        """Deleting the actor keeps the notification"""
        notification = self._notification(NotificationVerb.REVIEW_LIKED, 'r', actor=self.actor_profile)
        self.actor_user.delete()
        notification.refresh_from_db()
        self.assertIsNone(notification.actor)

    def test_cascade_delete_recipient(self):
        """Deleting the recipient deletes their history"""
        self._notification(NotificationVerb.NEW_PHOTO, 'p')
        self.user.delete()
        self.assertEqual(Notification.objects.count(), 0)

    def test_get_deep_link(self):
        """Each verb opens its own screen"""
        expected = {
            NotificationVerb.FRIEND_REQUEST: 'socialeats://friends/requests/42',
            NotificationVerb.FRIEND_ACTIVITY: 'socialeats://restaurant/42',
            NotificationVerb.NEW_REVIEW: 'socialeats://review/42',
            NotificationVerb.REVIEW_LIKED: 'socialeats://review/42',
            NotificationVerb.GROUP_DINING_INVITATION: 'socialeats://dining/42',
            NotificationVerb.GROUP_DINING_REMINDER: 'socialeats://dining/42',
            NotificationVerb.NEW_PHOTO: 'socialeats://photo/42',
            NotificationVerb.SYSTEM_ALERT: 'socialeats://alert/42',
        }
        for verb, link in expected.items():
            self.assertEqual(self._notification(verb, '42').get_deep_link(), link)

    def test_get_deep_link_without_target(self):
        """No target means nothing to open"""
        self.assertIsNone(self._notification(NotificationVerb.NEW_REVIEW).get_deep_link())
        self.assertIsNone(self._notification(NotificationVerb.FRIEND_REQUEST).get_deep_link())


class MessageBuilderTest(TestCase):
    """Notification texts"""

    def test_friend_activity(self):
        message = messages.friend_activity("Ayse", "Ciya")
        self.assertEqual(message.verb, NotificationVerb.FRIEND_ACTIVITY)
        self.assertEqual(message.title, "Friend Activity")
        self.assertEqual(message.body, "Ayse is now dining at Ciya")

    def test_new_review_truncates_rating(self):
        message = messages.new_review("Ayse", "Ciya", 4.5)
        self.assertEqual(message.body, "Ayse reviewed Ciya - 4 stars")
        self.assertEqual(message.data['rating'], '4.5')

    def test_group_dining_invitation(self):
        when = datetime(2024, 7, 5, 19, 30, tzinfo=dt_timezone.utc)
        message = messages.group_dining_invitation("Ayse", "Friday dinner", "Ciya", when)
        self.assertEqual(message.body, "Ayse invited you to Friday dinner at Ciya on Jul 05, 2024 at 19:30")
        self.assertEqual(message.data['scheduled_date'], when.isoformat())

    def test_payload_values_are_strings(self):
        when = datetime(2024, 7, 5, 19, 30, tzinfo=dt_timezone.utc)
        for message in [
            messages.friend_request("Ayse"),
            messages.review_liked("Ayse", "Ciya"),
            messages.group_dining_reminder("Friday dinner", "Ciya", when),
            messages.new_photo("Ayse", "Ciya"),
        ]:
            self.assertTrue(all(isinstance(v, str) for v in message.data.values()))


class DeviceTokenModelTest(TestCase):
    """Test cases for DeviceToken model"""

    def setUp(self):
        """Set up test data"""
        self.user = User.objects.create_user(username='deviceuser', email='device@example.com', password='testpass123')

    def test_unique_token_constraint(self):
        """Test that tokens must be unique"""
        DeviceToken.objects.create(user=self.user, token='unique_token_123', platform=DevicePlatform.iOS)

        with self.assertRaises(IntegrityError):
            DeviceToken.objects.create(user=self.user, token='unique_token_123', platform=DevicePlatform.ANDROID)

    def test_cascade_delete_user_tokens(self):
        """Test that deleting user deletes their tokens"""
        DeviceToken.objects.create(user=self.user, token='token_to_delete', platform=DevicePlatform.ANDROID)
        self.user.delete()
        self.assertEqual(DeviceToken.objects.count(), 0)


class PushServiceTest(TestCase):
    """Test cases for PushService"""

    def setUp(self):
        """Set up test data"""
        self.push_service = PushService()
        self.user = User.objects.create_user(username='pushuser', email='push@example.com', password='testpass123')

    def test_without_credentials_push_is_disabled(self):
        """Sends are a no-op when Firebase is not configured"""
        DeviceToken.objects.create(user=self.user, token='t1', platform=DevicePlatform.ANDROID)
        self.assertIsNone(self.push_service.fcm_client)
        self.assertEqual(self.push_service.send_to_user(self.user.id, "Title", "Body"), 0)

    def test_register_device_moves_token_to_latest_user(self):
        """Registering an existing token re-activates it for the new owner"""
        other = User.objects.create_user(username='other', password='testpass123')
        DeviceToken.objects.create(user=other, token='existing_token', platform=DevicePlatform.ANDROID, is_active=False)

        device_token = self.push_service.register_device(user=self.user, token='existing_token',
                                                         platform=DevicePlatform.iOS)

        self.assertEqual(device_token.user, self.user)
        self.assertTrue(device_token.is_active)
        self.assertEqual(device_token.platform, DevicePlatform.iOS)
        self.assertEqual(DeviceToken.objects.count(), 1)

    @mock.patch('notifications.services.messaging.send_each_for_multicast')
    def test_send_cleans_up_failed_tokens(self, mock_send):
        """Tokens FCM rejects are removed after a multicast"""
        DeviceToken.objects.create(user=self.user, token='good', platform=DevicePlatform.ANDROID)
        DeviceToken.objects.create(user=self.user, token='stale', platform=DevicePlatform.iOS)
        DeviceToken.objects.create(user=self.user, token='off', platform=DevicePlatform.WEB, is_active=False)
        self.push_service.fcm_client = mock.Mock()

        tokens_sent = []

        def fake_send(message):
            tokens_sent.extend(message.tokens)
            return mock.Mock(
                success_count=1,
                failure_count=1,
                responses=[mock.Mock(success=token == 'good') for token in message.tokens],
            )

        mock_send.side_effect = fake_send

        delivered = self.push_service.send_to_user(self.user.id, "Title", "Body", {'type': 'new_photo'})

        self.assertEqual(delivered, 1)
        self.assertEqual(sorted(tokens_sent), ['good', 'stale'])
        self.assertEqual(list(DeviceToken.objects.values_list('token', flat=True).order_by('token')), ['good', 'off'])

    def test_cleanup_invalid_tokens(self):
        """Test cleaning up invalid tokens"""
        DeviceToken.objects.create(user=self.user, token='invalid_token_1', platform=DevicePlatform.ANDROID)
        DeviceToken.objects.create(user=self.user, token='invalid_token_2', platform=DevicePlatform.iOS)

        self.assertEqual(self.push_service.cleanup_invalid_tokens(['invalid_token_1', 'invalid_token_2']), 2)
        self.assertEqual(DeviceToken.objects.filter(user=self.user).count(), 0)


class NotificationDispatcherTest(TestCase):
    """Stored history plus push delivery"""

    def setUp(self):
        self.push = mock.Mock()
        self.push.send_to_user.return_value = 1
        self.dispatcher = NotificationDispatcher(push_service=self.push)
        self.recipient = User.objects.create_user(username='friend', password='x').profile
        self.actor = User.objects.create_user(username='diner', password='x').profile

    def test_notify_stores_and_pushes(self):
        notification = self.dispatcher.notify(
            self.recipient, messages.friend_activity("diner", "Ciya"), actor=self.actor, target_object_id='r1'
        )

        self.assertEqual(Notification.objects.count(), 1)
        self.assertEqual(notification.target_object_id, 'r1')
        user_id, title, body, payload = self.push.send_to_user.call_args[0]
        self.assertEqual(user_id, self.recipient.user_id)
        self.assertEqual(title, "Friend Activity")
        self.assertEqual(body, "diner is now dining at Ciya")
        self.assertEqual(payload['deep_link'], 'socialeats://restaurant/r1')
        self.assertEqual(payload['notification_id'], str(notification.id))

    def test_actor_is_never_notified_about_itself(self):
        result = self.dispatcher.notify(self.actor, messages.new_photo("diner", "Ciya"), actor=self.actor)
        self.assertIsNone(result)
        self.push.send_to_user.assert_not_called()

    def test_push_failure_is_swallowed(self):
        self.push.send_to_user.side_effect = RuntimeError("fcm down")

        with self.assertLogs('notifications.services', level='ERROR'):
            notification = self.dispatcher.notify(self.recipient, messages.friend_request("diner"), actor=self.actor)

        self.assertIsNotNone(notification)
        self.assertEqual(Notification.objects.count(), 1)

    def test_notify_many_skips_actor(self):
        sent = self.dispatcher.notify_many(
            [self.recipient, self.actor], messages.new_photo("diner", "Ciya"), actor=self.actor
        )
        self.assertEqual([n.recipient_id for n in sent], [self.recipient.pk])


class NotificationAPITest(APITestCase):
    """Notification history endpoints"""

    def setUp(self):
        self.user = User.objects.create_user(username='reader', password='testpass123')
        self.other = User.objects.create_user(username='someone', password='testpass123')
        self.client.force_authenticate(user=self.user)
        self.first = self._notify(self.user, NotificationVerb.NEW_REVIEW)
        self.second = self._notify(self.user, NotificationVerb.FRIEND_REQUEST)
        self._notify(self.other, NotificationVerb.NEW_PHOTO)

    def _notify(self, user, verb):
        return Notification.objects.create(recipient=user.profile, verb=verb, title='t', body='b', target_object_id='x')

    def test_list_only_own(self):
        response = self.client.get(reverse('notifications:notification-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_filter_by_verb(self):
        response = self.client.get(reverse('notifications:notification-list'), {'verb': 'FRIEND_REQUEST'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['deep_link'], 'socialeats://friends/requests/x')

    def test_unread_count_and_mark_all(self):
        response = self.client.get(reverse('notifications:notification-unread-count'))
        self.assertEqual(response.data['unread_count'], 2)

        response = self.client.post(reverse('notifications:notification-mark-all-as-read'))
        self.assertEqual(response.data['count'], 2)
        self.assertFalse(Notification.objects.filter(recipient=self.user.profile, is_read=False).exists())
        self.assertTrue(Notification.objects.filter(recipient=self.other.profile, is_read=False).exists())

    def test_mark_single_as_read(self):
        url = reverse('notifications:notification-mark-as-read', args=[self.first.id])
        response = self.client.patch(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

    def test_bulk_delete_ignores_foreign_ids(self):
        foreign = Notification.objects.get(recipient=self.other.profile)
        response = self.client.post(reverse('notifications:notification-bulk-update'), {
            'notification_ids': [str(self.first.id), str(foreign.id)],
            'action': 'delete',
        }, format='json')

        self.assertEqual(response.data['count'], 1)
        self.assertTrue(Notification.objects.filter(id=foreign.id).exists())

    def test_register_device(self):
        response = self.client.post(reverse('notifications:device-token-register'), {
            'token': 'fcm-token-1',
            'platform': 'iOS',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        token = DeviceToken.objects.get(token='fcm-token-1')
        self.assertEqual(token.user, self.user)
        self.assertEqual(token.platform, DevicePlatform.iOS)
