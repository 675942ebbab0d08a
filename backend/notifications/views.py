from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Notification, DeviceToken, NotificationVerb
from .serializers import (
    NotificationSerializer,
    DeviceTokenSerializer,
    DeviceTokenRegisterSerializer,
    BulkNotificationSerializer,
)
from .services import get_push_service


class NotificationViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """
    The current user's notification history.

    GET    /notifications/                  list (?is_read=true|false, ?verb=...)
    GET    /notifications/{id}/             detail
    DELETE /notifications/{id}/             delete
    PATCH  /notifications/{id}/mark_as_read/
    PATCH  /notifications/{id}/mark_as_unread/
    POST   /notifications/mark_all_as_read/
    GET    /notifications/unread_count/
    POST   /notifications/bulk_update/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient__user=self.request.user).select_related('actor__user')

        is_read = self.request.query_params.get('is_read')
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read.lower() == 'true')

        verb = self.request.query_params.get('verb')
        if verb and verb in NotificationVerb.values:
            queryset = queryset.filter(verb=verb)

        return queryset.order_by('-created_at')

    @action(detail=True, methods=['patch'])
    def mark_as_read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        return Response(self.get_serializer(notification).data)

    @action(detail=True, methods=['patch'])
    def mark_as_unread(self, request, pk=None):
        notification = self.get_object()
        notification.is_read = False
        notification.save(update_fields=['is_read', 'updated_at'])
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=['post'])
    def mark_all_as_read(self, request):
        updated_count = Notification.objects.filter(
            recipient__user=request.user,
            is_read=False
        ).update(is_read=True)
        return Response(
            {'message': f'Marked {updated_count} notifications as read', 'count': updated_count},
            status=status.HTTP_200_OK
        )

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        count = Notification.objects.filter(recipient__user=request.user, is_read=False).count()
        return Response({'unread_count': count}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['post'])
    def bulk_update(self, request):
        serializer = BulkNotificationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        # Only the caller's own notifications are touched
        queryset = Notification.objects.filter(
            recipient__user=request.user,
            id__in=serializer.validated_data['notification_ids']
        )

        action_type = serializer.validated_data['action']
        if action_type == 'mark_as_read':
            updated_count = queryset.update(is_read=True)
        elif action_type == 'mark_as_unread':
            updated_count = queryset.update(is_read=False)
        else:
            updated_count, _ = queryset.delete()

        return Response(
            {'message': f'Updated {updated_count} notifications', 'count': updated_count},
            status=status.HTTP_200_OK
        )


class DeviceTokenViewSet(mixins.ListModelMixin,
                         mixins.DestroyModelMixin,
                         viewsets.GenericViewSet):
    """
    GET    /device-tokens/           list the current user's tokens
    POST   /device-tokens/register/  register {token, platform}
    POST   /device-tokens/{id}/disable/
    DELETE /device-tokens/{id}/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = DeviceTokenSerializer

    def get_queryset(self):
        return DeviceToken.objects.filter(user=self.request.user)

    @action(detail=False, methods=['post'])
    def register(self, request):
        serializer = DeviceTokenRegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        device_token = get_push_service().register_device(
            user=request.user,
            token=serializer.validated_data['token'],
            platform=serializer.validated_data['platform']
        )
        return Response(
            {'message': 'Device registered successfully', 'device_id': device_token.id},
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def disable(self, request, pk=None):
        token = self.get_object()
        token.is_active = False
        token.save(update_fields=['is_active', 'updated_at'])
        return Response({'message': 'Device token disabled'}, status=status.HTTP_200_OK)
