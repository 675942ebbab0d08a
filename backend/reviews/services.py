"""
Review submission and the stored rating aggregate.

Every write that touches RestaurantRating locks rows (select_for_update)
inside one transaction: submissions lock the Restaurant row, edits lock the
review and the aggregate row. Concurrent writes for one restaurant are
applied one after another instead of overwriting each other.
"""
import logging
import uuid
from typing import List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.display import materialize_display_copy
from core.errors import IneligibleOperationError, NotFoundError, ValidationError
from core.results import guarded
from notifications import messages
from notifications.services import get_dispatcher
from restaurants.services import RestaurantService
from user.models import UserProfile
from user.selection import is_active_at

from . import aggregation
from .aggregation import RatingAggregate
from .models import RestaurantRating, Review

logger = logging.getLogger(__name__)

MAX_REVIEW_PHOTOS = 10


class ReviewService:

    def __init__(self, dispatcher=None):
        self.dispatcher = dispatcher or get_dispatcher()

    @staticmethod
    def validate_rating(rating):
        if not aggregation.is_valid_rating(rating):
            raise ValidationError("Rating must be between 1.0 and 5.0", reason='INVALID_RATING')
        return float(rating)

    @staticmethod
    def get_review(review_id, lock: bool = False) -> Review:
        queryset = Review.objects.select_for_update() if lock else Review.objects.all()
        try:
            return queryset.get(pk=review_id)
        except (Review.DoesNotExist, DjangoValidationError):
            raise NotFoundError("Review not found", reason='REVIEW_NOT_FOUND')

    @guarded("review_detail")
    def review_detail(self, review_id) -> Review:
        return self.get_review(review_id)

    @guarded("submit_review")
    def submit_review(self, profile: UserProfile, restaurant_id: str, rating, review_text: str = "",
                      photos: Optional[List[str]] = None, now=None) -> Review:
        rating = self.validate_rating(rating)
        photos = list(photos or [])
        if len(photos) > MAX_REVIEW_PHOTOS:
            raise ValidationError(f"At most {MAX_REVIEW_PHOTOS} photos per review", reason='TOO_MANY_PHOTOS')

        now = now or timezone.now()
        with transaction.atomic():
            # The restaurant row is the lock before the first review creates RestaurantRating
            restaurant = RestaurantService.get_restaurant(restaurant_id, lock=True)
            if Review.objects.filter(user=profile, restaurant=restaurant).exists():
                raise IneligibleOperationError("You already reviewed this restaurant", reason='ALREADY_REVIEWED')

            # Display copy carries restaurant_id, the FK column
            review = Review.objects.create(
                user=profile,
                rating=rating,
                review_text=review_text,
                photos=photos,
                is_verified_visit=is_active_at(profile.selection, restaurant.place_id, now),
                **materialize_display_copy(restaurant, profile)
            )

            row = RestaurantRating.objects.select_for_update().filter(restaurant=restaurant).first()
            current = row.to_aggregate() if row else aggregation.empty(restaurant.place_id)
            updated = aggregation.apply_new_rating(current, rating, now)
            if row is None:
                row = RestaurantRating(restaurant=restaurant)
            row.apply(updated)
            row.save()

        logger.info(f"Review {review.pk} for {restaurant.place_id}: {updated.total_reviews} reviews, "
                    f"avg {updated.average_rating:.2f}")

        friends = UserProfile.objects.filter(pk__in=profile.friend_ids()).select_related('user')
        self.dispatcher.notify_many(
            friends,
            messages.new_review(profile.name, restaurant.name, rating),
            actor=profile,
            target_object_id=review.pk,
        )
        return review

    @guarded("edit_review_rating")
    def edit_review_rating(self, profile: UserProfile, review_id, new_rating, now=None) -> Review:
        new_rating = self.validate_rating(new_rating)
        now = now or timezone.now()

        with transaction.atomic():
            review = self.get_review(review_id, lock=True)
            if review.user_id != profile.pk:
                raise IneligibleOperationError("Only the author can edit this review", reason='NOT_AUTHOR')

            old_rating = review.rating
            if old_rating == new_rating:
                return review

            row = RestaurantRating.objects.select_for_update().filter(restaurant_id=review.restaurant_id).first()
            if row is None:
                raise NotFoundError("Rating aggregate missing for reviewed restaurant", reason='RATING_NOT_FOUND')

            row.apply(aggregation.apply_rating_edit(row.to_aggregate(), old_rating, new_rating, now))
            row.save()

            review.rating = new_rating
            review.save(update_fields=['rating', 'updated_at'])
        return review

    @guarded("like_review")
    def like_review(self, profile: UserProfile, review_id) -> Review:
        review = self.get_review(review_id)
        if review.likes.filter(pk=profile.pk).exists():
            return review

        review.likes.add(profile)
        if review.user_id != profile.pk:
            self.dispatcher.notify(
                review.user,
                messages.review_liked(profile.name, review.restaurant_name),
                actor=profile,
                target_object_id=review.pk,
            )
        return review

    @guarded("unlike_review")
    def unlike_review(self, profile: UserProfile, review_id) -> Review:
        review = self.get_review(review_id)
        review.likes.remove(profile)
        return review

    @guarded("reviews_for_restaurant")
    def reviews_for_restaurant(self, restaurant_id: str, limit: int = 50) -> List[Review]:
        return list(Review.objects.filter(restaurant_id=restaurant_id).prefetch_related('likes')[:limit])

    @guarded("reviews_by_user")
    def reviews_by_user(self, profile_id, limit: int = 50) -> List[Review]:
        try:
            profile_id = uuid.UUID(str(profile_id))
        except ValueError:
            raise ValidationError("Invalid user id", reason='INVALID_ID')
        return list(Review.objects.filter(user_id=profile_id).prefetch_related('likes')[:limit])

    @guarded("get_restaurant_rating")
    def get_restaurant_rating(self, restaurant_id: str) -> Optional[RatingAggregate]:
        """None when the restaurant has no stored aggregate yet."""
        return RestaurantRating.aggregate_for(restaurant_id)
