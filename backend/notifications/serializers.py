from django.conf import settings
from rest_framework import serializers

from members.directory import Segment
from .models import Notification, DeviceRegistration, DevicePlatform


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for Notification model"""
    recipient_id = serializers.UUIDField(read_only=True)
    sender_id = serializers.UUIDField(read_only=True, allow_null=True)
    sender_name = serializers.CharField(
        source='sender.display_name',
        read_only=True,
        allow_null=True
    )

    class Meta:
        model = Notification
        fields = [
            'id',
            'recipient_id',
            'sender_id',
            'sender_name',
            'kind',
            'title',
            'body',
            'related_id',
            'is_read',
            'created_at',
        ]
        read_only_fields = fields


class NotificationListParamsSerializer(serializers.Serializer):
    """Query parameters for listing notifications"""
    limit = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Values above NOTIFICATION_LIST_MAX_LIMIT are capped",
        default=settings.NOTIFICATION_LIST_DEFAULT_LIMIT
    )


class DeviceRegistrationSerializer(serializers.ModelSerializer):
    """Serializer for DeviceRegistration model"""
    member_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = DeviceRegistration
        fields = [
            'id',
            'member_id',
            'platform',
            'device_label',
            'last_known_ip',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class DeviceRegisterSerializer(serializers.Serializer):
    """Serializer for registering push tokens"""
    member_id = serializers.UUIDField(required=False)
    push_token = serializers.CharField(max_length=500, trim_whitespace=True)
    platform = serializers.ChoiceField(
        choices=DevicePlatform.choices,
        default=DevicePlatform.MOBILE
    )
    device_label = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    ip = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")


class BroadcastSerializer(serializers.Serializer):
    """Serializer for admin broadcasts"""
    title = serializers.CharField(max_length=200)
    body = serializers.CharField()
    target_segment = serializers.ChoiceField(
        choices=Segment.CHOICES,
        help_text="Audience: all, premium, recently_active"
    )
