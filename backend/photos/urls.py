"""
URL routing for photo sharing endpoints.
"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import PhotoViewSet

router = SimpleRouter()
router.register(r'', PhotoViewSet, basename='photo')

app_name = 'photos'

urlpatterns = [
    path('', include(router.urls)),
]
