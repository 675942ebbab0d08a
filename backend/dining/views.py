"""
Views for group dining events and invitations.
"""
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from core.responses import result_response

from .serializers import (
    GroupDiningCreateSerializer,
    GroupDiningSerializer,
    InvitationResponseSerializer,
    InvitationSerializer,
    InviteSerializer,
)
from .services import GroupDiningService

UUID_REGEX = '[0-9a-fA-F-]{36}'


class GroupDiningViewSet(viewsets.ViewSet):
    """
    GET  /dining/                         events I participate in
    GET  /dining/?scope=upcoming          upcoming active events
    GET  /dining/?restaurant_id=...       upcoming active events at a restaurant
    POST /dining/                         create (organizer joins automatically)
    GET  /dining/{id}/
    POST /dining/{id}/join/ | leave/ | cancel/ | complete/ | invite/
    POST /dining/reminders/               staff only
    """

    lookup_value_regex = UUID_REGEX

    def _render(self, request, many=False):
        context = {'profile': request.user.profile, 'now': timezone.now()}
        return lambda value: GroupDiningSerializer(value, many=many, context=context).data

    def list(self, request):
        service = GroupDiningService()
        restaurant_id = request.query_params.get('restaurant_id')
        if restaurant_id:
            result = service.events_for_restaurant(restaurant_id)
        elif request.query_params.get('scope') == 'upcoming':
            result = service.upcoming_events()
        else:
            result = service.events_for_user(request.user.profile)
        return result_response(result, self._render(request, many=True))

    def create(self, request):
        serializer = GroupDiningCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = GroupDiningService().create_event(
            request.user.profile,
            data['restaurant_id'],
            data['title'],
            data['scheduled_date'],
            data['max_participants'],
            description=data['description'],
        )
        return result_response(result, self._render(request), success_status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        result = GroupDiningService().event_detail(pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        result = GroupDiningService().join_event(request.user.profile, pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        result = GroupDiningService().leave_event(request.user.profile, pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        result = GroupDiningService().cancel_event(request.user.profile, pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        result = GroupDiningService().complete_event(request.user.profile, pk)
        return result_response(result, self._render(request))

    @action(detail=True, methods=['post'])
    def invite(self, request, pk=None):
        serializer = InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = GroupDiningService().invite(request.user.profile, pk, serializer.validated_data['to_user_id'])
        return result_response(
            result, lambda invitation: InvitationSerializer(invitation).data, success_status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['post'], permission_classes=[IsAdminUser])
    def reminders(self, request):
        result = GroupDiningService().send_reminders()
        return result_response(result, lambda count: {'reminded': count})


class InvitationViewSet(viewsets.ViewSet):
    """
    GET  /dining/invitations/                pending invitations for me
    POST /dining/invitations/{id}/respond/   {"accept": true|false}
    """

    lookup_value_regex = UUID_REGEX

    def list(self, request):
        result = GroupDiningService().pending_invitations(request.user.profile)
        return result_response(result, lambda invitations: InvitationSerializer(invitations, many=True).data)

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        serializer = InvitationResponseSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        result = GroupDiningService().respond_invitation(
            request.user.profile, pk, serializer.validated_data['accept']
        )
        return result_response(result, lambda invitation: InvitationSerializer(invitation).data)
