"""
Title/body/data builders for every push the app sends.

Each builder returns a NotificationMessage; the dispatcher persists it and
forwards it to FCM. FCM data payloads must be string-to-string maps.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict

from .models import NotificationVerb


@dataclass(frozen=True)
class NotificationMessage:
    verb: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


def _when(value: datetime) -> str:
    return value.strftime('%b %d, %Y at %H:%M')


def friend_activity(friend_name: str, restaurant_name: str) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.FRIEND_ACTIVITY,
        title="Friend Activity",
        body=f"{friend_name} is now dining at {restaurant_name}",
        data={
            'type': 'friend_activity',
            'friend_name': friend_name,
            'restaurant_name': restaurant_name,
        },
    )


def friend_request(from_name: str) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.FRIEND_REQUEST,
        title="New Friend Request",
        body=f"{from_name} sent you a friend request",
        data={'type': 'friend_request', 'from_name': from_name},
    )


def new_review(reviewer_name: str, restaurant_name: str, rating: float) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.NEW_REVIEW,
        title="New Restaurant Review",
        body=f"{reviewer_name} reviewed {restaurant_name} - {int(rating)} stars",
        data={
            'type': 'new_review',
            'reviewer_name': reviewer_name,
            'restaurant_name': restaurant_name,
            'rating': str(rating),
        },
    )


def review_liked(liker_name: str, restaurant_name: str) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.REVIEW_LIKED,
        title="Review Liked",
        body=f"{liker_name} liked your review of {restaurant_name}",
        data={
            'type': 'review_liked',
            'liker_name': liker_name,
            'restaurant_name': restaurant_name,
        },
    )


def group_dining_invitation(from_name: str, group_title: str, restaurant_name: str,
                            scheduled_date: datetime) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.GROUP_DINING_INVITATION,
        title="Group Dining Invitation",
        body=f"{from_name} invited you to {group_title} at {restaurant_name} on {_when(scheduled_date)}",
        data={
            'type': 'group_dining_invitation',
            'from_user_name': from_name,
            'group_title': group_title,
            'restaurant_name': restaurant_name,
            'scheduled_date': scheduled_date.isoformat(),
        },
    )


def group_dining_reminder(group_title: str, restaurant_name: str, scheduled_date: datetime) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.GROUP_DINING_REMINDER,
        title="Group Dining Reminder",
        body=f"Don't forget about {group_title} at {restaurant_name} at {scheduled_date.strftime('%H:%M')}",
        data={
            'type': 'group_dining_reminder',
            'group_title': group_title,
            'restaurant_name': restaurant_name,
            'scheduled_date': scheduled_date.isoformat(),
        },
    )


def new_photo(user_name: str, restaurant_name: str) -> NotificationMessage:
    return NotificationMessage(
        verb=NotificationVerb.NEW_PHOTO,
        title="New Photo Shared",
        body=f"{user_name} shared a photo from {restaurant_name}",
        data={
            'type': 'new_photo',
            'user_name': user_name,
            'restaurant_name': restaurant_name,
        },
    )
