from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('core.urls')),
    path('api/user/', include('user.urls')),
    path('api/restaurants/', include('restaurants.urls')),
    path('api/reviews/', include('reviews.urls')),
    path('api/dining/', include('dining.urls')),
    path('api/notifications/', include('notifications.urls')),
    path('api/photos/', include('photos.urls')),
]
