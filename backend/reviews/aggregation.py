"""
RatingAggregator: running (average, count, star histogram) per restaurant.

Pure functions over an immutable RatingAggregate snapshot. Ratings must be
validated (1.0 <= r <= 5.0) before they reach this module; nothing here clamps.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

MIN_RATING = 1.0
MAX_RATING = 5.0


@dataclass(frozen=True)
class RatingAggregate:
    restaurant_id: str
    average_rating: float = 0.0
    total_reviews: int = 0
    # star (1..5) -> count, missing keys mean 0
    rating_distribution: Dict[int, int] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    @property
    def rating_sum(self) -> float:
        return self.average_rating * self.total_reviews


def empty(restaurant_id: str) -> RatingAggregate:
    """Zero state used as a computation default before the first review."""
    return RatingAggregate(restaurant_id=restaurant_id)


def is_valid_rating(rating) -> bool:
    try:
        return MIN_RATING <= float(rating) <= MAX_RATING
    except (TypeError, ValueError):
        return False


def star_bucket(rating: float) -> int:
    """Nearest whole star; .5 rounds up (4.5 -> 5, 2.5 -> 3)."""
    return int(math.floor(rating + 0.5))


def _average(rating_sum: float, total: int) -> float:
    return rating_sum / total if total > 0 else 0.0


def apply_new_rating(current: RatingAggregate, new_rating: float, now: datetime) -> RatingAggregate:
    total = current.total_reviews + 1
    rating_sum = current.rating_sum + new_rating

    distribution = dict(current.rating_distribution)
    star = star_bucket(new_rating)
    distribution[star] = distribution.get(star, 0) + 1

    return RatingAggregate(
        restaurant_id=current.restaurant_id,
        average_rating=_average(rating_sum, total),
        total_reviews=total,
        rating_distribution=distribution,
        last_updated=now,
    )


def apply_rating_edit(current: RatingAggregate, old_rating: float, new_rating: float,
                      now: datetime) -> RatingAggregate:
    """Replaces one contributing rating; the review count does not change."""
    total = current.total_reviews
    rating_sum = current.rating_sum - old_rating + new_rating

    distribution = dict(current.rating_distribution)
    old_star = star_bucket(old_rating)
    distribution[old_star] = max(distribution.get(old_star, 0) - 1, 0)
    if distribution[old_star] == 0:
        del distribution[old_star]
    new_star = star_bucket(new_rating)
    distribution[new_star] = distribution.get(new_star, 0) + 1

    return RatingAggregate(
        restaurant_id=current.restaurant_id,
        average_rating=_average(rating_sum, total),
        total_reviews=total,
        rating_distribution=distribution,
        last_updated=now,
    )
