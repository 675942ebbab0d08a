"""
URL configuration for reviews.
"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import RestaurantRatingView, ReviewViewSet

router = SimpleRouter()
router.register(r'', ReviewViewSet, basename='review')

app_name = 'reviews'

urlpatterns = [
    path('ratings/<str:restaurant_id>/', RestaurantRatingView.as_view(), name='restaurant-rating'),
    path('', include(router.urls)),
]
