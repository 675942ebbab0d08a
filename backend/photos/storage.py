"""
Photo bytes live in the Firebase Storage bucket configured for the project.
"""
import logging
import uuid

import firebase_admin
from django.conf import settings
from firebase_admin import exceptions, storage
from google.api_core import exceptions as gcloud_exceptions

from core.errors import StoreUnavailableError
from notifications.services import get_push_service

logger = logging.getLogger(__name__)

PHOTO_PATH = "restaurant_photos/{restaurant_id}/{photo_id}.jpg"


class PhotoStorage:
    """
    Uploads and deletes photo objects. Uses the Firebase app created by the
    push service so credentials are configured in one place.
    """

    def __init__(self, bucket_name: str = None):
        self.bucket_name = bucket_name or settings.FIREBASE_STORAGE_BUCKET or None

    def _bucket(self):
        get_push_service()
        if not firebase_admin._apps:
            raise StoreUnavailableError("Photo storage is not configured", reason='STORAGE_UNAVAILABLE')
        try:
            return storage.bucket(self.bucket_name)
        except ValueError as e:
            raise StoreUnavailableError(f"Photo storage is not configured: {e}", reason='STORAGE_UNAVAILABLE')

    def upload(self, restaurant_id: str, data: bytes, content_type: str = 'image/jpeg'):
        """
        Stores the image and returns (public_url, storage_path).
        """
        path = PHOTO_PATH.format(restaurant_id=restaurant_id, photo_id=uuid.uuid4())
        blob = self._bucket().blob(path)
        try:
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except (gcloud_exceptions.GoogleAPIError, exceptions.FirebaseError) as e:
            logger.error(f"Photo upload to {path} failed: {str(e)}")
            raise StoreUnavailableError("Photo upload failed", reason='STORAGE_UNAVAILABLE')
        logger.info(f"Uploaded {len(data)} bytes to {path}")
        return blob.public_url, path

    def delete(self, path: str) -> bool:
        if not path:
            return False
        try:
            self._bucket().blob(path).delete()
        except (gcloud_exceptions.GoogleAPIError, exceptions.FirebaseError, StoreUnavailableError) as e:
            logger.warning(f"Could not delete stored photo {path}: {str(e)}")
            return False
        return True
