"""
Tests for photo sharing. Documents go to the mongomock connection set up in
conftest.py.
"""
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from pymongo.errors import PyMongoError
from rest_framework import status
from rest_framework.test import APITestCase

from core.errors import StoreUnavailableError
from core.results import ErrorKind
from notifications.models import Notification, NotificationVerb
from notifications.services import NotificationDispatcher
from restaurants.models import Restaurant
from user.selection import make_selection
from .models import RestaurantPhoto
from .services import PhotoService

User = get_user_model()

PHOTO_URL = "https://storage.googleapis.com/socialeats/restaurant_photos/r1/p.jpg"


def fake_storage():
    storage = mock.Mock()
    storage.upload.return_value = (PHOTO_URL, "restaurant_photos/r1/p.jpg")
    storage.delete.return_value = True
    return storage


def silent_dispatcher():
    push = mock.Mock()
    push.send_to_user.return_value = 0
    return NotificationDispatcher(push_service=push)


class PhotoServiceTests(TestCase):
    def setUp(self):
        RestaurantPhoto.drop_collection()
        self.storage = fake_storage()
        self.service = PhotoService(storage=self.storage, dispatcher=silent_dispatcher())
        self.alice = User.objects.create_user(username='alice', password='x').profile
        self.bob = User.objects.create_user(username='bob', password='x').profile
        self.carol = User.objects.create_user(username='carol', password='x').profile
        Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)
        Restaurant.objects.create(place_id='r2', name="Kanaat", latitude=41.02, longitude=29.01)
        self.alice.add_friend(self.bob)

    def tearDown(self):
        RestaurantPhoto.drop_collection()

    def _upload(self, profile, restaurant_id='r1', **kwargs):
        result = self.service.upload_photo(profile, restaurant_id, b"jpeg-bytes", **kwargs)
        self.assertTrue(result.ok, result.message)
        return result.value

    def test_upload_stores_document_and_notifies_friends(self):
        photo = self._upload(self.alice, caption="Lahmacun", tags=["Food", "food", "dessert"])

        self.storage.upload.assert_called_once_with('r1', b"jpeg-bytes", 'image/jpeg')
        saved = RestaurantPhoto.objects.get(id=photo.id)
        self.assertEqual(saved.photo_url, PHOTO_URL)
        self.assertEqual(saved.restaurant_name, "Ciya")
        self.assertEqual(saved.user_name, "alice")
        self.assertEqual(saved.tags, ["food", "dessert"])
        self.assertFalse(saved.is_verified)

        notification = Notification.objects.get(recipient=self.bob)
        self.assertEqual(notification.verb, NotificationVerb.NEW_PHOTO)
        self.assertEqual(notification.body, "alice shared a photo from Ciya")
        self.assertEqual(notification.target_object_id, str(photo.id))

    def test_upload_with_active_selection_is_verified(self):
        now = timezone.now()
        self.alice.store_selection(make_selection('r1', "Ciya", now - timedelta(hours=2)))
        self.assertTrue(self._upload(self.alice, now=now).is_verified)
        self.assertFalse(self._upload(self.alice, restaurant_id='r2', now=now).is_verified)

    def test_upload_validation(self):
        self.assertEqual(self.service.upload_photo(self.alice, 'r1', b"").reason, 'EMPTY_IMAGE')
        self.assertEqual(self.service.upload_photo(self.alice, 'r1', b"x", tags=["selfie"]).reason, 'INVALID_TAG')
        self.assertEqual(
            self.service.upload_photo(self.alice, 'r1', b"x", caption="a" * 501).reason, 'CAPTION_TOO_LONG'
        )
        self.assertEqual(self.service.upload_photo(self.alice, 'nope', b"x").error_kind, ErrorKind.NOT_FOUND)
        self.storage.upload.assert_not_called()

    def test_storage_outage(self):
        self.storage.upload.side_effect = StoreUnavailableError("down", reason='STORAGE_UNAVAILABLE')
        result = self.service.upload_photo(self.alice, 'r1', b"x")
        self.assertEqual(result.error_kind, ErrorKind.STORE_UNAVAILABLE)
        self.assertEqual(RestaurantPhoto.objects.count(), 0)

    def test_failed_save_removes_uploaded_file(self):
        with mock.patch.object(RestaurantPhoto, 'save', side_effect=PyMongoError("write failed")):
            result = self.service.upload_photo(self.alice, 'r1', b"jpeg-bytes")

        self.assertEqual(result.error_kind, ErrorKind.STORE_UNAVAILABLE)
        self.storage.delete.assert_called_once_with("restaurant_photos/r1/p.jpg")
        self.assertEqual(RestaurantPhoto.objects.count(), 0)
        self.assertFalse(Notification.objects.exists())

    def test_feeds(self):
        self._upload(self.alice, tags=["food"])
        self._upload(self.bob, restaurant_id='r2', tags=["view"])
        self._upload(self.carol, tags=["food"])

        self.assertEqual(len(self.service.photos_for_restaurant('r1').value), 2)
        self.assertEqual(len(self.service.photos_by_user(self.bob.pk).value), 1)
        self.assertEqual(len(self.service.photos_by_tag('food').value), 2)

        friends_feed = self.service.photos_from_friends(self.alice).value
        self.assertEqual([p.user_name for p in friends_feed], ["bob"])
        self.assertEqual(self.service.photos_from_friends(self.carol).value, [])

    def test_like_is_idempotent_and_counted(self):
        photo = self._upload(self.alice)

        self.service.like_photo(self.bob, photo.id)
        liked = self.service.like_photo(self.bob, photo.id).value

        self.assertEqual(liked.likes, [str(self.bob.pk)])
        self.assertEqual(liked.like_count, 1)

        unliked = self.service.unlike_photo(self.bob, photo.id).value
        self.assertEqual(unliked.likes, [])
        self.assertEqual(unliked.like_count, 0)
        self.assertEqual(self.service.unlike_photo(self.bob, photo.id).value.like_count, 0)

    def test_most_liked(self):
        quiet = self._upload(self.alice)
        popular = self._upload(self.bob)
        self.service.like_photo(self.alice, popular.id)
        self.service.like_photo(self.carol, popular.id)
        self.service.like_photo(self.carol, quiet.id)

        ranked = self.service.most_liked_photos().value

        self.assertEqual([p.id for p in ranked], [popular.id, quiet.id])

    def test_delete_is_owner_only(self):
        photo = self._upload(self.alice)

        refused = self.service.delete_photo(self.bob, photo.id)
        self.assertEqual(refused.reason, 'NOT_OWNER')

        self.assertTrue(self.service.delete_photo(self.alice, photo.id).ok)
        self.assertEqual(RestaurantPhoto.objects.count(), 0)
        self.storage.delete.assert_called_once_with("restaurant_photos/r1/p.jpg")

    def test_unknown_photo(self):
        self.assertEqual(self.service.photo_detail('not-an-id').reason, 'PHOTO_NOT_FOUND')
        self.assertEqual(self.service.photo_detail('0' * 24).reason, 'PHOTO_NOT_FOUND')


@mock.patch('photos.services.PhotoStorage.upload', return_value=(PHOTO_URL, "restaurant_photos/r1/p.jpg"))
class PhotoAPITests(APITestCase):
    def setUp(self):
        RestaurantPhoto.drop_collection()
        self.user = User.objects.create_user(username='eater', password='password123')
        self.client.force_authenticate(user=self.user)
        Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)

    def tearDown(self):
        RestaurantPhoto.drop_collection()

    def _post_photo(self):
        image = SimpleUploadedFile("dish.jpg", b"jpeg-bytes", content_type="image/jpeg")
        return self.client.post(reverse('photos:photo-list'), {
            'restaurant_id': 'r1',
            'image': image,
            'caption': "Kebab",
            'tags': ['food'],
        }, format='multipart')

    def test_upload_and_list(self, mock_upload):
        response = self._post_photo()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['photo_url'], PHOTO_URL)
        self.assertEqual(response.data['tags'], ['food'])
        self.assertFalse(response.data['liked_by_me'])

        listed = self.client.get(reverse('photos:photo-list'), {'restaurant_id': 'r1'})
        self.assertEqual(len(listed.data), 1)

    def test_list_requires_filter(self, mock_upload):
        response = self.client.get(reverse('photos:photo-list'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_like(self, mock_upload):
        photo_id = self._post_photo().data['id']

        response = self.client.post(reverse('photos:photo-like', args=[photo_id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['like_count'], 1)
        self.assertTrue(response.data['liked_by_me'])

    def test_delete_by_other_user_is_403(self, mock_upload):
        photo_id = self._post_photo().data['id']
        other = User.objects.create_user(username='other', password='password123')
        self.client.force_authenticate(user=other)

        response = self.client.delete(reverse('photos:photo-detail', args=[photo_id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_most_liked(self, mock_upload):
        self._post_photo()
        response = self.client.get(reverse('photos:photo-most-liked'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
