"""
URL routing for dining app.
"""
from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import GroupDiningViewSet, InvitationViewSet

router = SimpleRouter()
router.register(r'invitations', InvitationViewSet, basename='invitation')
router.register(r'', GroupDiningViewSet, basename='group-dining')

app_name = 'dining'

urlpatterns = [
    path('', include(router.urls)),
]
