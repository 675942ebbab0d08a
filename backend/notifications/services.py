"""
Push notification service using Firebase Cloud Messaging (FCM).
Handles device token management and message dispatching.
"""
import logging
from typing import Dict, List, Optional

import firebase_admin
from django.conf import settings
from django.db import transaction
from firebase_admin import credentials, exceptions, messaging

from .messages import NotificationMessage
from .models import DeviceToken, Notification

logger = logging.getLogger(__name__)


class PushService:
    """
    Wrapper around the FCM Admin SDK. Finds a user's active device tokens and
    sends one multicast message to all of them.

    Without configured credentials (and no app initialized elsewhere) the
    service stays disabled and every send is a logged no-op.
    """

    def __init__(self, credentials_path: Optional[str] = None):
        self.fcm_client = None

        try:
            if firebase_admin._apps:
                self.fcm_client = firebase_admin.get_app()
            elif credentials_path:
                cred = credentials.Certificate(credentials_path)
                self.fcm_client = firebase_admin.initialize_app(cred, {
                    'storageBucket': settings.FIREBASE_STORAGE_BUCKET or None,
                })
            if self.fcm_client:
                logger.info("Firebase Admin SDK initialized successfully")
            else:
                logger.warning("Firebase credentials not configured. Push notifications disabled.")
        except (ValueError, IOError) as e:
            logger.error(f"Failed to initialize Firebase Admin SDK: {str(e)}")
            self.fcm_client = None

    def register_device(self, user, token: str, platform: str) -> DeviceToken:
        """
        Creates or re-assigns a device token; a token moves to whichever user
        registered it last.
        """
        with transaction.atomic():
            device_token, created = DeviceToken.objects.update_or_create(
                token=token,
                defaults={
                    'user': user,
                    'platform': platform,
                    'is_active': True
                }
            )
        action = "created" if created else "updated"
        logger.info(f"Device token {action} for user {user.username}")
        return device_token

    def send_to_user(self, user_id, title: str, body: str, data: Dict[str, str] = None) -> int:
        """
        Sends a push to every active device of a user.

        Args:
            user_id: id of the auth User owning the tokens
            title: notification title
            body: notification body
            data: optional string-to-string payload

        Returns:
            int: number of successful deliveries
        """
        if not self.fcm_client:
            logger.debug("FCM client not initialized. Skipping push to user %s", user_id)
            return 0

        token_list = list(DeviceToken.objects.filter(
            user_id=user_id,
            is_active=True
        ).values_list('token', flat=True))

        if not token_list:
            logger.info(f"No active device tokens found for user {user_id}")
            return 0

        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data={str(k): str(v) for k, v in (data or {}).items()},
            tokens=token_list
        )

        try:
            response = messaging.send_each_for_multicast(message)
        except (exceptions.FirebaseError, ValueError) as e:
            logger.error(f"Error sending notification to user {user_id}: {str(e)}")
            return 0

        if response.failure_count > 0:
            failed_tokens = [
                token_list[idx] for idx, resp in enumerate(response.responses) if not resp.success
            ]
            self.cleanup_invalid_tokens(failed_tokens)

        logger.info(
            f"Sent notification to user {user_id}: "
            f"{response.success_count} succeeded, {response.failure_count} failed"
        )
        return response.success_count

    def cleanup_invalid_tokens(self, failures: List[str]) -> int:
        """Removes tokens FCM rejected."""
        if not failures:
            return 0

        with transaction.atomic():
            deleted_count, _ = DeviceToken.objects.filter(token__in=failures).delete()
        logger.info(f"Cleaned up {deleted_count} invalid device tokens")
        return deleted_count


_push_service = None


def get_push_service() -> PushService:
    """Process-wide PushService built from settings.FIREBASE_CREDENTIALS_PATH."""
    global _push_service
    if _push_service is None:
        _push_service = PushService(settings.FIREBASE_CREDENTIALS_PATH or None)
    return _push_service


class NotificationDispatcher:
    """
    Stores a Notification row and pushes it to the recipient's devices.

    Notifying is a side effect of other operations (friend requests, reviews,
    invitations, ...). Any failure here is logged and swallowed so it never
    changes the outcome of the operation that triggered it.
    """

    def __init__(self, push_service: Optional[PushService] = None):
        self._push_service = push_service

    @property
    def push_service(self) -> PushService:
        if self._push_service is None:
            self._push_service = get_push_service()
        return self._push_service

    def notify(self, recipient, message: NotificationMessage, actor=None,
               target_object_id: str = '') -> Optional[Notification]:
        if actor is not None and recipient.pk == actor.pk:
            return None
        try:
            notification = Notification.objects.create(
                recipient=recipient,
                actor=actor,
                verb=message.verb,
                title=message.title,
                body=message.body,
                target_object_id=str(target_object_id or ''),
                data=dict(message.data),
            )
        except Exception:
            logger.exception("Could not store %s notification for %s", message.verb, recipient.pk)
            return None

        payload = dict(message.data)
        payload['notification_id'] = str(notification.id)
        deep_link = notification.get_deep_link()
        if deep_link:
            payload['deep_link'] = deep_link
        try:
            self.push_service.send_to_user(recipient.user_id, message.title, message.body, payload)
        except Exception:
            logger.exception("Push delivery failed for notification %s", notification.id)
        return notification

    def notify_many(self, recipients, message: NotificationMessage, actor=None,
                    target_object_id: str = '') -> List[Notification]:
        sent = []
        for recipient in recipients:
            notification = self.notify(recipient, message, actor=actor, target_object_id=target_object_id)
            if notification is not None:
                sent.append(notification)
        return sent


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()
