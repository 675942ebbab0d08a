import mongoengine
from django.apps import AppConfig
from django.conf import settings


class PhotosConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'photos'

    def ready(self):
        # Lazy connection; the first query opens it
        mongoengine.connect(
            settings.MONGODB_DB,
            host=settings.MONGODB_URI,
            alias='default',
            connect=False,
        )
