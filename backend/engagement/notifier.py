"""
Turns engagement events into notifications. Emission is best effort: the
action or view record is the source of truth and never depends on it.
"""
import logging
from typing import Optional

from django.db import transaction

from notifications.models import Notification, NotificationKind
from notifications.services import NotificationOutbox
from .models import ActionKind

logger = logging.getLogger(__name__)

# kind -> (notification kind, title, body template)
ACTION_NOTIFICATIONS = {
    ActionKind.INTEREST: (
        NotificationKind.INTEREST_RECEIVED,
        'New Interest Received',
        '{name} has sent you an interest.',
    ),
    ActionKind.ACCEPT: (
        NotificationKind.INTEREST_ACCEPTED,
        'Interest Accepted',
        '{name} has accepted your interest!',
    ),
    ActionKind.SHORTLIST: (
        NotificationKind.SHORTLISTED,
        'Profile Shortlisted',
        '{name} has shortlisted your profile.',
    ),
}

PROFILE_VIEWED_TITLE = 'Profile Viewed'
PROFILE_VIEWED_BODY = '{name} viewed your profile.'


class EngagementNotifier:

    def __init__(self, outbox: NotificationOutbox = None):
        self.outbox = outbox or NotificationOutbox()

    def action_recorded(self, action) -> Optional[Notification]:
        """Notifies the target of a new action. Reject is private: no notification."""
        template = ACTION_NOTIFICATIONS.get(action.kind)
        if template is None:
            return None

        kind, title, body = template
        return self._emit(
            recipient_id=action.target_id,
            sender_id=action.actor_id,
            kind=kind,
            title=title,
            body=body.format(name=action.actor.display_name),
            related_id=str(action.id),
        )

    def profile_viewed(self, viewer, target) -> Optional[Notification]:
        return self._emit(
            recipient_id=target.id,
            sender_id=viewer.id,
            kind=NotificationKind.PROFILE_VIEWED,
            title=PROFILE_VIEWED_TITLE,
            body=PROFILE_VIEWED_BODY.format(name=viewer.display_name),
            related_id=str(viewer.id),
        )

    def _emit(self, **kwargs) -> Optional[Notification]:
        try:
            with transaction.atomic():
                return self.outbox.emit(**kwargs)
        except Exception:
            logger.exception(
                f"Failed to emit {kwargs.get('kind')} notification for member {kwargs.get('recipient_id')}"
            )
            return None
