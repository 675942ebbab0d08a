"""
Views for reviews and restaurant ratings.
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core.responses import result_response

from .serializers import (
    RatingAggregateSerializer,
    RatingEditSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
)
from .services import ReviewService


class ReviewViewSet(viewsets.ViewSet):
    """
    GET    /reviews/?restaurant_id=...|user_id=...
    POST   /reviews/                    submit
    GET    /reviews/{id}/
    PATCH  /reviews/{id}/rating/        author edits the rating
    POST   /reviews/{id}/like/
    DELETE /reviews/{id}/like/
    """

    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def _render(self, request, many=False):
        context = {'profile': request.user.profile}
        return lambda value: ReviewSerializer(value, many=many, context=context).data

    def list(self, request):
        service = ReviewService()
        restaurant_id = request.query_params.get('restaurant_id')
        user_id = request.query_params.get('user_id')
        if restaurant_id:
            result = service.reviews_for_restaurant(restaurant_id)
        elif user_id:
            result = service.reviews_by_user(user_id)
        else:
            return Response(
                {'error': 'restaurant_id or user_id is required', 'reason': 'MISSING_FILTER'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return result_response(result, self._render(request, many=True))

    def create(self, request):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = ReviewService().submit_review(
            request.user.profile,
            data['restaurant_id'],
            data['rating'],
            data['review_text'],
            data['photos'],
        )
        return result_response(result, self._render(request), success_status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        result = ReviewService().review_detail(pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['patch'])
    def rating(self, request, pk=None):
        serializer = RatingEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = ReviewService().edit_review_rating(request.user.profile, pk, serializer.validated_data['rating'])
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post', 'delete'])
    def like(self, request, pk=None):
        service = ReviewService()
        if request.method == 'DELETE':
            result = service.unlike_review(request.user.profile, pk)
        else:
            result = service.like_review(request.user.profile, pk)
        return result_response(result, self._render(request))


class RestaurantRatingView(APIView):
    """GET /reviews/ratings/{restaurant_id}/ -> {"rating": aggregate or null}"""

    def get(self, request, restaurant_id):
        result = ReviewService().get_restaurant_rating(restaurant_id)
        return result_response(
            result, lambda aggregate: {'rating': RatingAggregateSerializer(aggregate).data if aggregate else None}
        )
