"""
Single place where restaurant and user display fields are copied onto other
records (reviews, photos, group dinings, invitations).

The document-style records keep these copies for reads without joins; building
them here keeps the field names and fallbacks consistent.
"""
from typing import Dict, Optional


def restaurant_display_copy(restaurant_id: str, name: str, address: Optional[str] = None) -> Dict[str, str]:
    copy = {
        'restaurant_id': restaurant_id,
        'restaurant_name': name or '',
    }
    if address is not None:
        copy['restaurant_address'] = address
    return copy


def user_display_copy(profile, prefix: str = 'user') -> Dict[str, Optional[str]]:
    """
    Returns {<prefix>_name, <prefix>_photo_url} for a UserProfile-like object.
    """
    return {
        f'{prefix}_name': profile.display_name or profile.user.username,
        f'{prefix}_photo_url': profile.photo_url or None,
    }


def materialize_display_copy(restaurant=None, profile=None, user_prefix: str = 'user',
                             include_address: bool = False) -> Dict[str, Optional[str]]:
    """
    Builds the denormalized display fields for a record.

    Args:
        restaurant: object exposing place_id, name, address (Restaurant model or snapshot)
        profile: UserProfile whose name/photo are copied
        user_prefix: key prefix for the user fields ('user', 'organizer', 'from_user')
        include_address: also copy the restaurant address

    Returns:
        dict of display fields ready to be passed to a model constructor
    """
    copy = {}
    if restaurant is not None:
        copy.update(restaurant_display_copy(
            restaurant.place_id,
            restaurant.name,
            restaurant.address if include_address else None,
        ))
    if profile is not None:
        copy.update(user_display_copy(profile, user_prefix))
    return copy
