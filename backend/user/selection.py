"""
SelectionExpiry: the fixed window during which a user's "currently dining at X"
claim is valid.

Expiry is a read-time check. Nothing here (or anywhere else) deletes stale
selections on a schedule; callers re-check on every read.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_SELECTION_WINDOW = timedelta(hours=12)


@dataclass(frozen=True)
class SelectedRestaurant:
    restaurant_id: str
    restaurant_name: str
    selected_at: datetime
    expires_at: datetime


def make_selection(restaurant_id: str, restaurant_name: str, now: datetime,
                   window: timedelta = DEFAULT_SELECTION_WINDOW) -> SelectedRestaurant:
    return SelectedRestaurant(
        restaurant_id=restaurant_id,
        restaurant_name=restaurant_name,
        selected_at=now,
        expires_at=now + window,
    )


def is_expired(selection: SelectedRestaurant, now: datetime) -> bool:
    return now > selection.expires_at


def is_active_at(selection, restaurant_id: str, now: datetime) -> bool:
    """True when the selection exists, has not expired and points at restaurant_id."""
    if selection is None:
        return False
    return selection.restaurant_id == restaurant_id and not is_expired(selection, now)
