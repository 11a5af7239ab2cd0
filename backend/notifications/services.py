"""
Notification outbox: the in-app notification records produced as a side
effect of engagement events, profile views and admin broadcasts.
"""
import logging
from functools import partial
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from members.directory import MemberDirectory
from .dispatcher import PushDispatcher
from .gateways import PushMessage
from .models import Notification, NotificationKind
from .tasks import schedule_push

logger = logging.getLogger(__name__)


class NotificationOutbox:
    """
    Writes notifications durably and schedules their push after commit.
    Readers only ever see their own notifications.
    """

    def emit(self, recipient_id, sender_id, kind: str, title: str, body: str,
             related_id: Optional[str] = None) -> Notification:
        """
        Stores a notification and schedules its push delivery.

        The push is registered with transaction.on_commit, so it is attempted
        only once the row is durable and never affects the write itself.

        Args:
            recipient_id: Member receiving the notification
            sender_id: Member who triggered it, or None for system messages
            kind: NotificationKind value
            title: Header text
            body: Main content
            related_id: Opaque id of the originating record

        Returns:
            Notification: the stored record
        """
        if kind not in NotificationKind.values:
            raise ValidationError(
                f"Invalid kind. Must be one of: {', '.join(NotificationKind.values)}"
            )

        notification = Notification.objects.create(
            recipient_id=recipient_id,
            sender_id=sender_id,
            kind=kind,
            title=title,
            body=body,
            related_id=str(related_id) if related_id is not None else None,
        )
        transaction.on_commit(partial(schedule_push, notification.id))
        logger.info(f"Notification {notification.id} ({kind}) stored for member {recipient_id}")
        return notification

    def emit_bulk(self, recipient_ids: Iterable, title: str, body: str,
                  kind: str = NotificationKind.SYSTEM) -> int:
        """
        Stores one sender-less notification per recipient without scheduling
        individual pushes. Used by broadcasts, which dispatch in one batch.
        """
        notifications = [
            Notification(recipient_id=recipient_id, sender=None, kind=kind, title=title, body=body)
            for recipient_id in recipient_ids
        ]
        Notification.objects.bulk_create(notifications, batch_size=500)
        return len(notifications)

    def list_for_recipient(self, recipient_id, limit: Optional[int] = None) -> List[Notification]:
        """
        Returns the recipient's newest notifications, newest first.

        The result is a materialized list: a snapshot taken at call time.
        """
        if limit is None:
            limit = settings.NOTIFICATION_LIST_DEFAULT_LIMIT
        limit = max(1, min(int(limit), settings.NOTIFICATION_LIST_MAX_LIMIT))

        return list(
            Notification.objects.filter(recipient_id=recipient_id)
            .select_related('sender__user')
            .order_by('-created_at')[:limit]
        )

    def mark_read(self, notification_id, recipient_id) -> bool:
        """
        Marks one notification read. A notification belonging to someone
        else behaves exactly like a missing one.
        """
        try:
            updated = Notification.objects.filter(
                id=notification_id,
                recipient_id=recipient_id
            ).update(is_read=True, updated_at=timezone.now())
        except DjangoValidationError:
            return False
        return updated > 0

    def mark_all_read(self, recipient_id) -> int:
        """Marks every unread notification of the recipient read."""
        return Notification.objects.filter(
            recipient_id=recipient_id,
            is_read=False
        ).update(is_read=True, updated_at=timezone.now())

    def unread_count(self, recipient_id) -> int:
        return Notification.objects.filter(recipient_id=recipient_id, is_read=False).count()


class BroadcastService:
    """
    Admin-triggered system announcements to a member segment.
    """

    def __init__(self, directory=None, outbox=None, dispatcher=None):
        self.directory = directory or MemberDirectory()
        self.outbox = outbox or NotificationOutbox()
        self.dispatcher = dispatcher

    def broadcast(self, title: str, body: str, target_segment: str) -> dict:
        """
        Stores a system notification for every member of the segment, then
        pushes it to all of their devices in one batched dispatch.

        Raises:
            ValidationError: unknown segment
            NotFoundError: the segment has no members
        """
        member_ids = self.directory.resolve_segment(target_segment)
        if not member_ids:
            raise NotFoundError(f"No members found for target segment: {target_segment}")

        logger.info(f"Broadcasting '{title}' to {len(member_ids)} member(s) (segment: {target_segment})")

        with transaction.atomic():
            self.outbox.emit_bulk(member_ids, title=title, body=body)

        message = PushMessage(
            title=title,
            body=body,
            data={
                'kind': NotificationKind.SYSTEM,
                'target_segment': target_segment,
                'timestamp': timezone.now().isoformat(),
            },
        )
        dispatcher = self.dispatcher or PushDispatcher()
        result = dispatcher.dispatch_to_members(member_ids, message)

        return {
            'target_segment': target_segment,
            'total_members': len(member_ids),
            'sent_count': result.sent,
            'failed_count': result.failed,
        }
