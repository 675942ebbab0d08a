"""
Friends, friend requests and the "currently dining at" selection.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.errors import IneligibleOperationError, NotFoundError, ValidationError
from core.results import guarded
from notifications import messages
from notifications.services import get_dispatcher
from restaurants.services import RestaurantService

from .models import FriendRequest, UserProfile
from .selection import SelectedRestaurant, is_expired, make_selection

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, dispatcher=None):
        self.dispatcher = dispatcher or get_dispatcher()

    @property
    def selection_window(self) -> timedelta:
        return timedelta(hours=settings.SELECTION_WINDOW_HOURS)

    @staticmethod
    def get_profile(profile_id) -> UserProfile:
        try:
            return UserProfile.objects.select_related('user').get(pk=profile_id)
        except UserProfile.DoesNotExist:
            raise NotFoundError(f"User {profile_id} not found", reason='USER_NOT_FOUND')

    @staticmethod
    def touch(profile: UserProfile, now=None):
        """Records activity; drives is_online."""
        now = now or timezone.now()
        UserProfile.objects.filter(pk=profile.pk).update(last_seen=now)
        profile.last_seen = now

    # Selection

    @guarded("select_restaurant")
    def select_restaurant(self, profile: UserProfile, restaurant_id: str, now=None) -> SelectedRestaurant:
        restaurant = RestaurantService.get_restaurant(restaurant_id)
        now = now or timezone.now()

        selection = make_selection(restaurant.place_id, restaurant.name, now, self.selection_window)
        profile.store_selection(selection)
        logger.info(f"{profile.pk} selected {restaurant.place_id} until {selection.expires_at.isoformat()}")

        friends = UserProfile.objects.filter(pk__in=profile.friend_ids()).select_related('user')
        self.dispatcher.notify_many(
            friends,
            messages.friend_activity(profile.name, restaurant.name),
            actor=profile,
            target_object_id=restaurant.place_id,
        )
        return selection

    @guarded("clear_selection")
    def clear_selection(self, profile: UserProfile):
        profile.store_selection(None)

    @staticmethod
    def active_selection(profile: UserProfile, now=None) -> Optional[SelectedRestaurant]:
        """
        The stored selection while it is still valid. An expired selection is
        cleared from storage when it is read.
        """
        selection = profile.selection
        if selection is None:
            return None
        if is_expired(selection, now or timezone.now()):
            profile.store_selection(None)
            return None
        return selection

    @guarded("get_active_selection")
    def get_active_selection(self, profile: UserProfile, now=None) -> Optional[SelectedRestaurant]:
        return self.active_selection(profile, now)

    @guarded("friends_dining_now")
    def friends_dining_now(self, profile: UserProfile, now=None) -> List[UserProfile]:
        return list(self._dining_friends(profile, now or timezone.now()))

    @guarded("friends_at_restaurant")
    def friends_at_restaurant(self, profile: UserProfile, restaurant_id: str, now=None) -> List[UserProfile]:
        return list(self._dining_friends(profile, now or timezone.now()).filter(selected_restaurant_id=restaurant_id))

    @staticmethod
    def _dining_friends(profile: UserProfile, now):
        # Active means not expired: now <= expires_at
        return UserProfile.objects.filter(
            pk__in=profile.friend_ids(),
            selection_expires_at__gte=now,
        ).exclude(selected_restaurant_id='').select_related('user').order_by('-selected_at')

    # Friends

    @guarded("list_friends")
    def list_friends(self, profile: UserProfile) -> List[UserProfile]:
        return list(UserProfile.objects.filter(pk__in=profile.friend_ids()).select_related('user'))

    @guarded("search_users")
    def search_users(self, profile: UserProfile, query: str, limit: int = 20) -> List[UserProfile]:
        """Matches email exactly, username or display name partially. Skips self and existing friends."""
        query = (query or '').strip()
        if len(query) < 2:
            raise ValidationError("Search query must be at least 2 characters", reason='QUERY_TOO_SHORT')

        matches = UserProfile.objects.filter(
            Q(user__email__iexact=query) | Q(user__username__icontains=query) | Q(display_name__icontains=query)
        ).exclude(pk=profile.pk).exclude(pk__in=profile.friend_ids()).select_related('user')
        return list(matches.order_by('user__username')[:limit])

    @guarded("send_friend_request")
    def send_friend_request(self, profile: UserProfile, to_profile_id) -> FriendRequest:
        target = self.get_profile(to_profile_id)
        if target.pk == profile.pk:
            raise ValidationError("You cannot send a friend request to yourself", reason='SELF_FRIENDSHIP')
        if profile.is_friends_with(target):
            raise IneligibleOperationError("Already friends", reason='ALREADY_FRIENDS')

        pending = FriendRequest.objects.filter(
            Q(from_user=profile, to_user=target) | Q(from_user=target, to_user=profile),
            status=FriendRequest.Status.PENDING,
        )
        if pending.exists():
            raise IneligibleOperationError("A friend request is already pending", reason='REQUEST_PENDING')

        request = FriendRequest.objects.create(from_user=profile, to_user=target)
        self.dispatcher.notify(target, messages.friend_request(profile.name), actor=profile,
                               target_object_id=request.pk)
        return request

    @guarded("respond_friend_request")
    def respond_friend_request(self, profile: UserProfile, request_id, accept: bool) -> FriendRequest:
        with transaction.atomic():
            try:
                request = FriendRequest.objects.select_for_update().get(pk=request_id)
            except FriendRequest.DoesNotExist:
                raise NotFoundError("Friend request not found", reason='REQUEST_NOT_FOUND')

            if request.to_user_id != profile.pk:
                raise IneligibleOperationError("Only the recipient can answer this request", reason='NOT_INVITEE')
            if request.status != FriendRequest.Status.PENDING:
                raise IneligibleOperationError("Friend request already answered", reason='ALREADY_RESPONDED')

            request.status = FriendRequest.Status.ACCEPTED if accept else FriendRequest.Status.DECLINED
            request.responded_at = timezone.now()
            request.save(update_fields=['status', 'responded_at'])

            if accept:
                profile.add_friend(request.from_user)
        return request

    @guarded("pending_friend_requests")
    def pending_friend_requests(self, profile: UserProfile) -> List[FriendRequest]:
        return list(FriendRequest.objects.filter(
            to_user=profile,
            status=FriendRequest.Status.PENDING,
        ).select_related('from_user__user'))

    @guarded("remove_friend")
    def remove_friend(self, profile: UserProfile, friend_id):
        friend = self.get_profile(friend_id)
        if not profile.is_friends_with(friend):
            raise IneligibleOperationError("Not friends", reason='NOT_FRIENDS')
        profile.remove_friend(friend)
