import uuid
from typing import Optional

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from restaurants.models import Restaurant
from user.models import UserProfile

from .aggregation import MAX_RATING, MIN_RATING, RatingAggregate


class Review(models.Model):
    """
    A user's review of a restaurant. Restaurant and author display fields are
    copied in at submission time.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='reviews')
    restaurant_name = models.CharField(max_length=255)

    user = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name='reviews')
    user_name = models.CharField(max_length=150)
    user_photo_url = models.URLField(max_length=500, blank=True, null=True)

    rating = models.FloatField(validators=[MinValueValidator(MIN_RATING), MaxValueValidator(MAX_RATING)])
    review_text = models.TextField(blank=True, default="")
    photos = models.JSONField(default=list, blank=True)
    likes = models.ManyToManyField(UserProfile, related_name='liked_reviews', blank=True)

    # The author's active selection pointed at this restaurant when submitting
    is_verified_visit = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'reviews_review'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['restaurant', 'created_at'], name='review_restaurant_created_idx'),
        ]
        unique_together = ('user', 'restaurant')

    def __str__(self):
        return f"Review by {self.user_name} for {self.restaurant_name} - {self.rating}/5"

    @property
    def like_count(self) -> int:
        return self.likes.count()


class RestaurantRating(models.Model):
    """
    Stored RatingAggregate. The row exists only once a restaurant has at least
    one review; absence means "no aggregate", not a zero aggregate.
    """
    restaurant = models.OneToOneField(
        Restaurant,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='rating_aggregate'
    )
    average_rating = models.FloatField(default=0.0)
    total_reviews = models.PositiveIntegerField(default=0)
    # JSON object keys are strings: {"5": 1, "3": 2}
    rating_distribution = models.JSONField(default=dict, blank=True)
    last_updated = models.DateTimeField()

    class Meta:
        db_table = 'reviews_restaurant_rating'

    def __str__(self):
        return f"{self.restaurant_id}: {self.average_rating:.2f} ({self.total_reviews})"

    def to_aggregate(self) -> RatingAggregate:
        return RatingAggregate(
            restaurant_id=self.restaurant_id,
            average_rating=self.average_rating,
            total_reviews=self.total_reviews,
            rating_distribution={int(star): count for star, count in self.rating_distribution.items()},
            last_updated=self.last_updated,
        )

    def apply(self, aggregate: RatingAggregate):
        self.average_rating = aggregate.average_rating
        self.total_reviews = aggregate.total_reviews
        self.rating_distribution = {str(star): count for star, count in aggregate.rating_distribution.items()}
        self.last_updated = aggregate.last_updated

    @classmethod
    def aggregate_for(cls, restaurant_id: str) -> Optional[RatingAggregate]:
        row = cls.objects.filter(restaurant_id=restaurant_id).first()
        return row.to_aggregate() if row else None
