from contextlib import contextmanager
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

from core.results import ErrorKind
from notifications.models import Notification, NotificationVerb
from notifications.services import NotificationDispatcher
from restaurants.models import Restaurant
from user.selection import make_selection
from . import aggregation
from .models import RestaurantRating, Review
from .services import ReviewService

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


class RatingAggregationTests(PlainTestCase):
    def setUp(self):
        self.now = datetime(2024, 5, 1, 20, 0, tzinfo=dt_timezone.utc)

    def _apply_all(self, ratings):
        current = aggregation.empty('r1')
        for rating in ratings:
            current = aggregation.apply_new_rating(current, rating, self.now)
        return current

    def test_three_reviews(self):
        result = self._apply_all([5.0, 3.0, 4.0])
        self.assertAlmostEqual(result.average_rating, 4.0)
        self.assertEqual(result.total_reviews, 3)
        self.assertEqual(result.rating_distribution, {5: 1, 3: 1, 4: 1})
        self.assertEqual(result.last_updated, self.now)

    def test_edit_moves_one_rating_between_buckets(self):
        current = self._apply_all([5.0, 3.0, 4.0])

        edited = aggregation.apply_rating_edit(current, 5.0, 1.0, self.now)

        self.assertAlmostEqual(edited.average_rating, 8.0 / 3, places=4)
        self.assertEqual(edited.total_reviews, 3)
        self.assertEqual(edited.rating_distribution, {1: 1, 3: 1, 4: 1})

    def test_average_matches_arithmetic_mean(self):
        ratings = [1.0, 2.5, 5.0, 4.5, 3.0, 3.5, 1.5]
        result = self._apply_all(ratings)
        self.assertAlmostEqual(result.average_rating, sum(ratings) / len(ratings), places=9)
        self.assertEqual(sum(result.rating_distribution.values()), len(ratings))

    def test_half_stars_round_up(self):
        self.assertEqual(aggregation.star_bucket(4.5), 5)
        self.assertEqual(aggregation.star_bucket(2.5), 3)
        self.assertEqual(aggregation.star_bucket(4.4), 4)
        self.assertEqual(aggregation.star_bucket(1.0), 1)

    def test_edit_equals_rebuilding_with_new_value(self):
        edited = aggregation.apply_rating_edit(self._apply_all([2.0, 4.0, 5.0]), 2.0, 3.5, self.now)
        rebuilt = self._apply_all([3.5, 4.0, 5.0])

        self.assertAlmostEqual(edited.average_rating, rebuilt.average_rating)
        self.assertEqual(edited.total_reviews, rebuilt.total_reviews)
        self.assertEqual(edited.rating_distribution, rebuilt.rating_distribution)

    def test_edit_to_same_bucket_keeps_distribution(self):
        current = self._apply_all([4.0])
        edited = aggregation.apply_rating_edit(current, 4.0, 4.2, self.now)
        self.assertEqual(edited.rating_distribution, {4: 1})
        self.assertAlmostEqual(edited.average_rating, 4.2)

    def test_rating_validation(self):
        self.assertTrue(aggregation.is_valid_rating(1.0))
        self.assertTrue(aggregation.is_valid_rating(5))
        self.assertFalse(aggregation.is_valid_rating(0.5))
        self.assertFalse(aggregation.is_valid_rating(5.1))
        self.assertFalse(aggregation.is_valid_rating('abc'))
        self.assertFalse(aggregation.is_valid_rating(None))


class ReviewServiceTests(TestCase):
    def setUp(self):
        self.service = ReviewService(dispatcher=silent_dispatcher())
        self.alice = User.objects.create_user(username='alice', password='x').profile
        self.bob = User.objects.create_user(username='bob', password='x').profile
        self.carol = User.objects.create_user(username='carol', password='x').profile
        self.restaurant = Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)
        self.alice.add_friend(self.bob)

    def test_no_aggregate_before_first_review(self):
        result = self.service.get_restaurant_rating('r1')
        self.assertTrue(result.ok)
        self.assertIsNone(result.value)

    def test_submissions_update_stored_aggregate(self):
        self.service.submit_review(self.alice, 'r1', 5.0)
        self.service.submit_review(self.bob, 'r1', 3.0)
        self.service.submit_review(self.carol, 'r1', 4.0)

        aggregate = self.service.get_restaurant_rating('r1').value

        self.assertAlmostEqual(aggregate.average_rating, 4.0)
        self.assertEqual(aggregate.total_reviews, 3)
        self.assertEqual(aggregate.rating_distribution, {5: 1, 3: 1, 4: 1})
        row = RestaurantRating.objects.get(restaurant_id='r1')
        self.assertEqual(row.rating_distribution, {'5': 1, '3': 1, '4': 1})

    def test_review_copies_display_fields(self):
        review = self.service.submit_review(self.alice, 'r1', 4.0, "Great kebab").value
        self.assertEqual(review.restaurant_name, "Ciya")
        self.assertEqual(review.user_name, "alice")
        self.assertEqual(review.restaurant_id, 'r1')

    def test_verified_visit_follows_active_selection(self):
        now = timezone.now()
        self.alice.store_selection(make_selection('r1', "Ciya", now - timedelta(hours=1)))
        self.bob.store_selection(make_selection('r1', "Ciya", now - timedelta(hours=13)))

        alice_review = self.service.submit_review(self.alice, 'r1', 5.0, now=now).value
        bob_review = self.service.submit_review(self.bob, 'r1', 4.0, now=now).value
        carol_review = self.service.submit_review(self.carol, 'r1', 3.0, now=now).value

        self.assertTrue(alice_review.is_verified_visit)
        self.assertFalse(bob_review.is_verified_visit)
        self.assertFalse(carol_review.is_verified_visit)

    def test_first_review_locks_the_restaurant_row(self):
        baseline = len(connection.atomic_blocks)

        with recorded_row_locks() as locks:
            self.assertTrue(self.service.submit_review(self.alice, 'r1', 5.0).ok)

        self.assertEqual([model for model, _ in locks], [Restaurant, RestaurantRating])
        self.assertTrue(all(depth > baseline for _, depth in locks))

    def test_rating_edit_locks_review_and_aggregate(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value
        baseline = len(connection.atomic_blocks)

        with recorded_row_locks() as locks:
            self.assertTrue(self.service.edit_review_rating(self.alice, review.pk, 2.0).ok)

        self.assertEqual([model for model, _ in locks], [Review, RestaurantRating])
        self.assertTrue(all(depth > baseline for _, depth in locks))

    @skipUnlessDBFeature('has_select_for_update')
    def test_submission_reads_for_update(self):
        with CaptureQueriesContext(connection) as ctx:
            self.service.submit_review(self.alice, 'r1', 4.0)
        locked = [q['sql'] for q in ctx.captured_queries if 'FOR UPDATE' in q['sql']]
        self.assertTrue(any(Restaurant._meta.db_table in sql for sql in locked))

    def test_invalid_rating_is_rejected(self):
        result = self.service.submit_review(self.alice, 'r1', 6.0)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)
        self.assertEqual(result.reason, 'INVALID_RATING')
        self.assertFalse(RestaurantRating.objects.exists())

    def test_too_many_photos(self):
        photos = [f"https://img.test/{i}.jpg" for i in range(11)]
        result = self.service.submit_review(self.alice, 'r1', 4.0, photos=photos)
        self.assertEqual(result.reason, 'TOO_MANY_PHOTOS')

    def test_unknown_restaurant(self):
        result = self.service.submit_review(self.alice, 'missing', 4.0)
        self.assertEqual(result.error_kind, ErrorKind.NOT_FOUND)

    def test_second_review_by_same_user_is_rejected(self):
        self.service.submit_review(self.alice, 'r1', 4.0)
        result = self.service.submit_review(self.alice, 'r1', 2.0)

        self.assertEqual(result.error_kind, ErrorKind.INELIGIBLE)
        self.assertEqual(result.reason, 'ALREADY_REVIEWED')
        self.assertEqual(RestaurantRating.objects.get(restaurant_id='r1').total_reviews, 1)

    def test_friends_are_notified_of_new_review(self):
        review = self.service.submit_review(self.alice, 'r1', 4.0).value

        notification = Notification.objects.get(recipient=self.bob)
        self.assertEqual(notification.verb, NotificationVerb.NEW_REVIEW)
        self.assertEqual(notification.body, "alice reviewed Ciya - 4 stars")
        self.assertEqual(notification.target_object_id, str(review.pk))
        self.assertFalse(Notification.objects.filter(recipient=self.carol).exists())

    def test_author_edits_rating(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value
        self.service.submit_review(self.bob, 'r1', 3.0)
        self.service.submit_review(self.carol, 'r1', 4.0)

        result = self.service.edit_review_rating(self.alice, review.pk, 1.0)

        self.assertTrue(result.ok)
        aggregate = self.service.get_restaurant_rating('r1').value
        self.assertAlmostEqual(aggregate.average_rating, 2.6667, places=4)
        self.assertEqual(aggregate.total_reviews, 3)
        self.assertEqual(aggregate.rating_distribution, {1: 1, 3: 1, 4: 1})

    def test_only_author_edits_rating(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value
        result = self.service.edit_review_rating(self.bob, review.pk, 1.0)
        self.assertEqual(result.reason, 'NOT_AUTHOR')

    def test_like_notifies_author_once(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value

        self.service.like_review(self.carol, review.pk)
        self.service.like_review(self.carol, review.pk)

        self.assertEqual(review.likes.count(), 1)
        liked = Notification.objects.filter(recipient=self.alice, verb=NotificationVerb.REVIEW_LIKED)
        self.assertEqual(liked.count(), 1)
        self.assertEqual(liked.first().body, "carol liked your review of Ciya")

    def test_liking_own_review_does_not_notify(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value
        self.service.like_review(self.alice, review.pk)
        self.assertFalse(Notification.objects.filter(verb=NotificationVerb.REVIEW_LIKED).exists())

    def test_unlike(self):
        review = self.service.submit_review(self.alice, 'r1', 5.0).value
        self.service.like_review(self.bob, review.pk)
        self.service.unlike_review(self.bob, review.pk)
        self.assertEqual(review.likes.count(), 0)

    def test_reviews_by_user_rejects_bad_id(self):
        result = self.service.reviews_by_user('not-a-uuid')
        self.assertEqual(result.reason, 'INVALID_ID')

    def test_lists(self):
        self.service.submit_review(self.alice, 'r1', 5.0)
        self.service.submit_review(self.bob, 'r1', 3.0)

        self.assertEqual(len(self.service.reviews_for_restaurant('r1').value), 2)
        self.assertEqual(len(self.service.reviews_by_user(self.bob.pk).value), 1)


class ReviewAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='eater', password='password123')
        self.other = User.objects.create_user(username='other', password='password123')
        self.client.force_authenticate(user=self.user)
        Restaurant.objects.create(place_id='r1', name="Ciya", latitude=41.0, longitude=29.0)

    def test_submit_and_read_rating(self):
        response = self.client.post(reverse('reviews:review-list'), {
            'restaurant_id': 'r1',
            'rating': 4.5,
            'review_text': "Lovely",
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['restaurant_name'], "Ciya")
        self.assertEqual(response.data['like_count'], 0)

        rating = self.client.get(reverse('reviews:restaurant-rating', args=['r1']))
        self.assertEqual(rating.status_code, status.HTTP_200_OK)
        self.assertEqual(rating.data['rating']['total_reviews'], 1)
        self.assertEqual(rating.data['rating']['rating_distribution'],
                         {'1': 0, '2': 0, '3': 0, '4': 0, '5': 1})

    def test_rating_is_null_without_reviews(self):
        response = self.client.get(reverse('reviews:restaurant-rating', args=['r1']))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['rating'])

    def test_out_of_range_rating_is_400(self):
        response = self.client.post(reverse('reviews:review-list'), {
            'restaurant_id': 'r1',
            'rating': 0,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_review_is_409(self):
        payload = {'restaurant_id': 'r1', 'rating': 4}
        self.client.post(reverse('reviews:review-list'), payload, format='json')
        response = self.client.post(reverse('reviews:review-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['reason'], 'ALREADY_REVIEWED')

    def test_list_requires_filter(self):
        response = self.client.get(reverse('reviews:review-list'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['reason'], 'MISSING_FILTER')

    def test_list_by_restaurant(self):
        self.client.post(reverse('reviews:review-list'), {'restaurant_id': 'r1', 'rating': 4}, format='json')
        response = self.client.get(reverse('reviews:review-list'), {'restaurant_id': 'r1'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_edit_by_other_user_is_403(self):
        review = ReviewService(dispatcher=silent_dispatcher()).submit_review(self.other.profile, 'r1', 3.0).value
        url = reverse('reviews:review-rating', args=[str(review.pk)])

        response = self.client.patch(url, {'rating': 5}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['reason'], 'NOT_AUTHOR')

    def test_like_and_unlike(self):
        review = ReviewService(dispatcher=silent_dispatcher()).submit_review(self.other.profile, 'r1', 3.0).value
        url = reverse('reviews:review-like', args=[str(review.pk)])

        liked = self.client.post(url)
        self.assertEqual(liked.status_code, status.HTTP_200_OK)
        self.assertEqual(liked.data['like_count'], 1)
        self.assertTrue(liked.data['liked_by_me'])

        unliked = self.client.delete(url)
        self.assertEqual(unliked.data['like_count'], 0)

    def test_unknown_review_is_404(self):
        url = reverse('reviews:review-detail', args=['00000000-0000-0000-0000-000000000000'])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
