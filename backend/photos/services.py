"""
Photo sharing: upload, feeds and likes over the RestaurantPhoto collection.
"""
import logging
from typing import Iterable, List, Optional

from bson import ObjectId
from django.utils import timezone
from mongoengine.errors import OperationError, ValidationError as DocumentValidationError
from pymongo.errors import PyMongoError

from core.display import materialize_display_copy
from core.errors import IneligibleOperationError, NotFoundError, ValidationError
from core.results import guarded
from notifications import messages
from notifications.services import get_dispatcher
from restaurants.services import RestaurantService
from user.models import UserProfile
from user.selection import is_active_at

from .models import PhotoTag, RestaurantPhoto
from .storage import PhotoStorage

logger = logging.getLogger(__name__)

MAX_CAPTION_LENGTH = 500
FRIENDS_FEED_LIMIT = 50
TAG_FEED_LIMIT = 30
MOST_LIKED_LIMIT = 20


class PhotoService:

    def __init__(self, storage: Optional[PhotoStorage] = None, dispatcher=None):
        self.storage = storage or PhotoStorage()
        self.dispatcher = dispatcher or get_dispatcher()

    @staticmethod
    def get_photo(photo_id) -> RestaurantPhoto:
        if not ObjectId.is_valid(str(photo_id)):
            raise NotFoundError("Photo not found", reason='PHOTO_NOT_FOUND')
        photo = RestaurantPhoto.objects(id=str(photo_id)).first()
        if photo is None:
            raise NotFoundError("Photo not found", reason='PHOTO_NOT_FOUND')
        return photo

    @staticmethod
    def validate_tags(tags: Iterable[str]) -> List[str]:
        cleaned = []
        for tag in tags or []:
            tag = tag.strip().lower()
            if tag not in PhotoTag.ALL:
                raise ValidationError(f"Unknown photo tag: {tag}", reason='INVALID_TAG')
            if tag not in cleaned:
                cleaned.append(tag)
        return cleaned

    @guarded("upload_photo")
    def upload_photo(self, profile: UserProfile, restaurant_id: str, data: bytes, caption: str = '',
                     tags: Optional[List[str]] = None, content_type: str = 'image/jpeg',
                     now=None) -> RestaurantPhoto:
        if not data:
            raise ValidationError("Image is empty", reason='EMPTY_IMAGE')
        caption = (caption or '').strip()
        if len(caption) > MAX_CAPTION_LENGTH:
            raise ValidationError(f"Caption is limited to {MAX_CAPTION_LENGTH} characters", reason='CAPTION_TOO_LONG')
        tags = self.validate_tags(tags)
        restaurant = RestaurantService.get_restaurant(restaurant_id)
        now = now or timezone.now()

        photo_url, storage_path = self.storage.upload(restaurant.place_id, data, content_type)
        photo = RestaurantPhoto(
            user_id=str(profile.pk),
            photo_url=photo_url,
            storage_path=storage_path,
            caption=caption,
            tags=tags,
            is_verified=is_active_at(profile.selection, restaurant.place_id, now),
            created_at=now,
            updated_at=now,
            **materialize_display_copy(restaurant, profile)
        )
        try:
            photo.save()
        except (OperationError, PyMongoError, DocumentValidationError) as e:
            logger.error(f"Saving photo stored at {storage_path} failed, removing the upload: {str(e)}")
            self.storage.delete(storage_path)
            raise
        logger.info(f"Photo {photo.id} uploaded by {profile.pk} at {restaurant.place_id}")

        friends = UserProfile.objects.filter(pk__in=profile.friend_ids()).select_related('user')
        self.dispatcher.notify_many(
            friends,
            messages.new_photo(profile.name, restaurant.name),
            actor=profile,
            target_object_id=str(photo.id),
        )
        return photo

    @guarded("photo_detail")
    def photo_detail(self, photo_id) -> RestaurantPhoto:
        return self.get_photo(photo_id)

    @guarded("photos_for_restaurant")
    def photos_for_restaurant(self, restaurant_id: str) -> List[RestaurantPhoto]:
        return list(RestaurantPhoto.objects(restaurant_id=restaurant_id).order_by('-created_at'))

    @guarded("photos_by_user")
    def photos_by_user(self, profile_id) -> List[RestaurantPhoto]:
        return list(RestaurantPhoto.objects(user_id=str(profile_id)).order_by('-created_at'))

    @guarded("photos_from_friends")
    def photos_from_friends(self, profile: UserProfile, limit: int = FRIENDS_FEED_LIMIT) -> List[RestaurantPhoto]:
        friend_ids = [str(pk) for pk in profile.friend_ids()]
        if not friend_ids:
            return []
        return list(RestaurantPhoto.objects(user_id__in=friend_ids).order_by('-created_at').limit(limit))

    @guarded("photos_by_tag")
    def photos_by_tag(self, tag: str, limit: int = TAG_FEED_LIMIT) -> List[RestaurantPhoto]:
        tag = self.validate_tags([tag])[0]
        return list(RestaurantPhoto.objects(tags=tag).order_by('-created_at').limit(limit))

    @guarded("most_liked_photos")
    def most_liked_photos(self, limit: int = MOST_LIKED_LIMIT) -> List[RestaurantPhoto]:
        return list(RestaurantPhoto.objects.order_by('-like_count', '-created_at').limit(limit))

    @guarded("like_photo")
    def like_photo(self, profile: UserProfile, photo_id) -> RestaurantPhoto:
        photo = self.get_photo(photo_id)
        profile_id = str(profile.pk)
        # Conditional update keeps like_count equal to len(likes)
        RestaurantPhoto.objects(id=photo.id, likes__nin=[profile_id]).update_one(
            push__likes=profile_id, inc__like_count=1, set__updated_at=timezone.now()
        )
        photo.reload()
        return photo

    @guarded("unlike_photo")
    def unlike_photo(self, profile: UserProfile, photo_id) -> RestaurantPhoto:
        photo = self.get_photo(photo_id)
        profile_id = str(profile.pk)
        RestaurantPhoto.objects(id=photo.id, likes=profile_id).update_one(
            pull__likes=profile_id, dec__like_count=1, set__updated_at=timezone.now()
        )
        photo.reload()
        return photo

    @guarded("delete_photo")
    def delete_photo(self, profile: UserProfile, photo_id) -> None:
        photo = self.get_photo(photo_id)
        if photo.user_id != str(profile.pk):
            raise IneligibleOperationError("Only the uploader can delete this photo", reason='NOT_OWNER')
        storage_path = photo.storage_path
        photo.delete()
        self.storage.delete(storage_path)
        logger.info(f"Photo {photo_id} deleted by {profile.pk}")
