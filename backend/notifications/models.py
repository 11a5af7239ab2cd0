import uuid
from django.db import models
from members.models import Member


class NotificationKind(models.TextChoices):
    """Enumeration for notification types"""
    INTEREST_RECEIVED = 'interest_received', 'Interest Received'
    INTEREST_ACCEPTED = 'interest_accepted', 'Interest Accepted'
    SHORTLISTED = 'shortlisted', 'Shortlisted'
    PROFILE_VIEWED = 'profile_viewed', 'Profile Viewed'
    SYSTEM = 'system', 'System'


class DevicePlatform(models.TextChoices):
    """Enumeration for device platforms"""
    MOBILE = 'mobile', 'Mobile'
    WEB = 'web', 'Web'


class Notification(models.Model):
    """
    A persistent record of an alert sent to a member. This allows members to
    view their activity list inside the app even if they missed the push
    notification on their lock screen.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # The member who receives the notification
    recipient = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        related_name='received_notifications'
    )

    # The member who triggered the event (null for system/admin messages)
    sender = models.ForeignKey(
        Member,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sent_notifications'
    )

    kind = models.CharField(
        max_length=20,
        choices=NotificationKind.choices,
        help_text="Type of notification: interest_received, interest_accepted, shortlisted, profile_viewed, system"
    )

    title = models.CharField(max_length=200)

    body = models.TextField()

    # Opaque link back to the origin, e.g. an engagement action id
    related_id = models.CharField(max_length=64, null=True, blank=True)

    is_read = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notifications_notification'
        indexes = [
            models.Index(fields=['recipient', 'created_at'], name='notification_recipient_idx'),
            models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.kind} notification for {self.recipient_id}"

    def get_push_data(self):
        """
        Data payload delivered with the push. FCM only accepts string values.
        Clients de-duplicate on notification_id.
        """
        data = {
            'notification_id': str(self.id),
            'kind': self.kind,
        }
        if self.sender_id:
            data['sender_id'] = str(self.sender_id)
        if self.related_id:
            data['related_id'] = self.related_id
        return data


class DeviceRegistration(models.Model):
    """
    Stores Firebase Cloud Messaging (FCM) push tokens.
    One member can have multiple active registrations across platforms; each
    platform slot holds at most one token believed current. Dead tokens are
    deactivated, never deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    member = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        related_name='device_registrations'
    )

    push_token = models.CharField(max_length=500)

    platform = models.CharField(
        max_length=10,
        choices=DevicePlatform.choices,
        default=DevicePlatform.MOBILE
    )

    # e.g. "Samsung Galaxy S21", "Chrome Browser"
    device_label = models.CharField(max_length=200, blank=True, default="")

    last_known_ip = models.CharField(max_length=64, blank=True, default="")

    # Whether the token is still believed valid
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notifications_device_registration'
        constraints = [
            models.UniqueConstraint(
                fields=['member', 'platform', 'push_token'],
                name='unique_member_platform_token',
            ),
        ]
        indexes = [
            models.Index(fields=['member', 'is_active'], name='device_member_active_idx'),
            models.Index(fields=['member', 'platform'], name='device_member_platform_idx'),
            models.Index(fields=['push_token'], name='device_token_idx'),
        ]

    def __str__(self):
        return f"Device registration for {self.member_id} ({self.platform})"
