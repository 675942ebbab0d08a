from django.utils import timezone
from rest_framework import status
from rest_framework.generics import get_object_or_404
from rest_framework.response import Response
from rest_framework.views import APIView

from core.responses import result_response

from .models import UserProfile
from .serializers import (
    FriendRequestCreateSerializer,
    FriendRequestResponseSerializer,
    FriendRequestSerializer,
    FriendSerializer,
    SelectionSerializer,
    SelectRestaurantSerializer,
    UserProfileSerializer,
)
from .services import UserService


class MeView(APIView):

    def get(self, request):
        profile = request.user.profile
        UserService.touch(profile)
        return Response(UserProfileSerializer(profile).data)

    def patch(self, request):
        profile = request.user.profile
        serializer = UserProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class ProfileView(APIView):

    def get(self, request, id):
        profile = get_object_or_404(UserProfile, id=id)
        return Response(UserProfileSerializer(profile).data)


class SearchView(APIView):

    def get(self, request):
        result = UserService().search_users(request.user.profile, request.query_params.get('q', ''))
        return result_response(result, lambda profiles: UserProfileSerializer(profiles, many=True).data)


class FriendsView(APIView):

    def get(self, request):
        result = UserService().list_friends(request.user.profile)
        context = {'now': timezone.now()}
        return result_response(result, lambda friends: FriendSerializer(friends, many=True, context=context).data)


class RemoveFriendView(APIView):

    def delete(self, request, id):
        result = UserService().remove_friend(request.user.profile, id)
        return result_response(result, lambda _: None, success_status=status.HTTP_204_NO_CONTENT)


class FriendsDiningNowView(APIView):

    def get(self, request):
        now = timezone.now()
        result = UserService().friends_dining_now(request.user.profile, now)
        return result_response(
            result, lambda friends: FriendSerializer(friends, many=True, context={'now': now}).data
        )


class FriendsAtRestaurantView(APIView):

    def get(self, request, restaurant_id):
        now = timezone.now()
        result = UserService().friends_at_restaurant(request.user.profile, restaurant_id, now)
        return result_response(
            result, lambda friends: FriendSerializer(friends, many=True, context={'now': now}).data
        )


class FriendRequestsView(APIView):

    def get(self, request):
        result = UserService().pending_friend_requests(request.user.profile)
        return result_response(result, lambda requests: FriendRequestSerializer(requests, many=True).data)

    def post(self, request):
        serializer = FriendRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = UserService().send_friend_request(request.user.profile, serializer.validated_data['to_user_id'])
        return result_response(
            result, lambda fr: FriendRequestSerializer(fr).data, success_status=status.HTTP_201_CREATED
        )


class FriendRequestRespondView(APIView):

    def post(self, request, id):
        serializer = FriendRequestResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = UserService().respond_friend_request(request.user.profile, id, serializer.validated_data['accept'])
        return result_response(result, lambda fr: FriendRequestSerializer(fr).data)


class SelectionView(APIView):
    """GET the active selection, POST to select a restaurant, DELETE to clear."""

    def get(self, request):
        result = UserService().get_active_selection(request.user.profile)
        return result_response(result, lambda s: {'selection': SelectionSerializer(s).data if s else None})

    def post(self, request):
        serializer = SelectRestaurantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = UserService().select_restaurant(request.user.profile, serializer.validated_data['restaurant_id'])
        return result_response(
            result, lambda s: {'selection': SelectionSerializer(s).data}, success_status=status.HTTP_201_CREATED
        )

    def delete(self, request):
        result = UserService().clear_selection(request.user.profile)
        return result_response(result, lambda _: None, success_status=status.HTTP_204_NO_CONTENT)
