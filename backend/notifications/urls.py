from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import NotificationViewSet, DeviceTokenViewSet

router = SimpleRouter()
router.register(r'device-tokens', DeviceTokenViewSet, basename='device-token')
router.register(r'', NotificationViewSet, basename='notification')

app_name = 'notifications'

urlpatterns = [
    path('', include(router.urls)),
]
