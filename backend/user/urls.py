from django.urls import path
from .views import (
    FriendRequestRespondView,
    FriendRequestsView,
    FriendsAtRestaurantView,
    FriendsDiningNowView,
    FriendsView,
    MeView,
    ProfileView,
    RemoveFriendView,
    SearchView,
    SelectionView,
)

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
    path("me/selection/", SelectionView.as_view(), name="selection"),
    path("search/", SearchView.as_view(), name="user-search"),
    path("friends/", FriendsView.as_view(), name="friends"),
    path("friends/dining-now/", FriendsDiningNowView.as_view(), name="friends-dining-now"),
    path("friends/at/<str:restaurant_id>/", FriendsAtRestaurantView.as_view(), name="friends-at-restaurant"),
    path("friends/<uuid:id>/", RemoveFriendView.as_view(), name="remove-friend"),
    path("friend-requests/", FriendRequestsView.as_view(), name="friend-requests"),
    path("friend-requests/<uuid:id>/respond/", FriendRequestRespondView.as_view(), name="friend-request-respond"),
    path("<uuid:id>/", ProfileView.as_view(), name="profile"),
]
