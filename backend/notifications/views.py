from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from core.exceptions import NotFoundError
from members.directory import MemberDirectory
from .registry import DeviceRegistry
from .serializers import (
    NotificationSerializer,
    NotificationListParamsSerializer,
    DeviceRegistrationSerializer,
    DeviceRegisterSerializer,
    BroadcastSerializer,
)
from .services import NotificationOutbox, BroadcastService

UUID_REGEX = '[0-9a-fA-F-]{36}'


def get_client_ip(request):
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')


class NotificationViewSet(viewsets.ViewSet):
    """
    ViewSet for a member's in-app notifications.

    GET /notifications/ - List newest notifications (?limit=, max 100)
    PUT /notifications/{id}/read/ - Mark one as read
    PUT /notifications/read-all/ - Mark all as read
    GET /notifications/unread-count/ - Count of unread notifications
    """

    lookup_value_regex = UUID_REGEX
    outbox = NotificationOutbox()

    def list(self, request):
        """List notifications for the current member"""
        params = NotificationListParamsSerializer(data=request.query_params)
        if not params.is_valid():
            return Response(params.errors, status=status.HTTP_400_BAD_REQUEST)

        member = MemberDirectory().for_user(request.user)
        notifications = self.outbox.list_for_recipient(member.id, params.validated_data['limit'])
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['put'])
    def read(self, request, pk=None):
        """Mark a single notification as read"""
        member = MemberDirectory().for_user(request.user)
        found = self.outbox.mark_read(pk, member.id)
        return Response({'found': found}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['put'], url_path='read-all')
    def read_all(self, request):
        """Mark all unread notifications as read"""
        member = MemberDirectory().for_user(request.user)
        count = self.outbox.mark_all_read(member.id)
        return Response({'count': count}, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        """Get count of unread notifications for current member"""
        member = MemberDirectory().for_user(request.user)
        return Response(
            {'unread_count': self.outbox.unread_count(member.id)},
            status=status.HTTP_200_OK
        )


class DeviceRegistrationViewSet(viewsets.ViewSet):
    """
    ViewSet for managing push tokens.

    GET /devices/ - List active devices of the current member
    POST /devices/register/ - Register or refresh a push token
    DELETE /devices/{id}/ - Deactivate one of the member's devices
    """

    lookup_value_regex = UUID_REGEX
    registry = DeviceRegistry()

    def list(self, request):
        member = MemberDirectory().for_user(request.user)
        serializer = DeviceRegistrationSerializer(self.registry.list_for_member(member.id), many=True)
        return Response({'count': len(serializer.data), 'results': serializer.data})

    @action(detail=False, methods=['post'])
    def register(self, request):
        """
        Register a push token.

        Expected payload:
        {
            "push_token": "abc123xyz",
            "platform": "mobile" | "web",
            "device_label": "Pixel 8"
        }
        """
        serializer = DeviceRegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        member = MemberDirectory().for_user(request.user)
        if data.get('member_id') and data['member_id'] != member.id:
            return Response(
                {'code': 'FORBIDDEN', 'message': 'member_id does not match authenticated member'},
                status=status.HTTP_403_FORBIDDEN
            )

        registration = self.registry.register(
            member=member,
            platform=data['platform'],
            push_token=data['push_token'],
            device_label=data['device_label'],
            ip=data['ip'] or get_client_ip(request),
        )
        return Response(
            DeviceRegistrationSerializer(registration).data,
            status=status.HTTP_200_OK
        )

    def destroy(self, request, pk=None):
        """Deactivate a device token"""
        member = MemberDirectory().for_user(request.user)
        if not self.registry.deactivate_for_member(member.id, pk):
            raise NotFoundError("Device not found")
        return Response({'found': True}, status=status.HTTP_200_OK)


class AdminNotificationViewSet(viewsets.ViewSet):
    """
    Staff-only notification tooling.

    POST /admin/notifications/broadcast/ - Push a system message to a segment
    GET /admin/notifications/stats/ - Device token statistics
    """

    permission_classes = [IsAdminUser]

    @action(detail=False, methods=['post'])
    def broadcast(self, request):
        serializer = BroadcastSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        summary = BroadcastService().broadcast(
            title=serializer.validated_data['title'],
            body=serializer.validated_data['body'],
            target_segment=serializer.validated_data['target_segment'],
        )
        return Response(summary, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        data = DeviceRegistry().stats()
        data['total_members'] = len(MemberDirectory().resolve_segment('all'))
        return Response(data, status=status.HTTP_200_OK)
