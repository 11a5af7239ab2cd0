"""
Engagement store: interest / shortlist / reject / accept actions between
members, and the profile unlock flow that combines the ledger with the
notification side effects.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import transaction

from core.exceptions import ValidationError
from members.directory import MemberDirectory
from members.models import Member
from .ledger import SpendResult, ViewTokenLedger, same_member
from .models import ActionKind, EngagementAction
from .notifier import EngagementNotifier

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    action: EngagementAction
    created: bool


@dataclass
class UnlockResult:
    spend: SpendResult
    profile: Member


def validate_kind(kind) -> str:
    if kind not in ActionKind.values:
        raise ValidationError(
            f"Invalid action kind. Must be one of: {', '.join(ActionKind.values)}"
        )
    return kind


class EngagementStore:
    """
    Domain service owning EngagementAction rows. Each (actor, target, kind)
    exists at most once; different kinds between the same pair coexist.
    """

    def __init__(self, directory: MemberDirectory = None, notifier: EngagementNotifier = None):
        self.directory = directory or MemberDirectory()
        self.notifier = notifier or EngagementNotifier()

    def upsert_action(self, actor_id, target_id, kind: str) -> UpsertResult:
        """
        Records an action, or refreshes it when it already exists.

        A newly created interest, accept or shortlist notifies the target.
        Notification failures are logged and do not affect the result.

        Raises:
            ValidationError: unknown kind or self-action
            NotFoundError: actor or target unknown or inactive
        """
        validate_kind(kind)
        if same_member(actor_id, target_id):
            raise ValidationError("Cannot perform action on your own profile")

        actor = self.directory.get_member(actor_id)
        target = self.directory.get_member(target_id)

        with transaction.atomic():
            action, created = EngagementAction.objects.get_or_create(
                actor=actor,
                target=target,
                kind=kind,
            )
            if not created:
                action.save(update_fields=['updated_at'])

        logger.info(f"Action {kind} from {actor.id} to {target.id} {'created' if created else 'refreshed'}")

        if created:
            self.notifier.action_recorded(action)

        return UpsertResult(action=action, created=created)

    def withdraw_action(self, actor_id, target_id, kind: str) -> bool:
        """
        Deletes an action. Withdrawing something that does not exist is not
        an error.

        Returns:
            bool: True if a row was deleted
        """
        validate_kind(kind)
        if same_member(actor_id, target_id):
            raise ValidationError("Cannot perform action on your own profile")

        deleted, _ = EngagementAction.objects.filter(
            actor_id=actor_id,
            target_id=target_id,
            kind=kind
        ).delete()

        if deleted:
            logger.info(f"Action {kind} from {actor_id} to {target_id} withdrawn")
        return deleted > 0

    def list_by_actor(self, actor_id, kind: Optional[str] = None):
        """Actions the member has sent, newest first."""
        queryset = EngagementAction.objects.filter(actor_id=actor_id).select_related('target__user')
        if kind:
            queryset = queryset.filter(kind=validate_kind(kind))
        return queryset.order_by('-created_at')

    def list_by_target(self, target_id, kind: Optional[str] = None):
        """Actions the member has received, newest first."""
        queryset = EngagementAction.objects.filter(target_id=target_id).select_related('actor__user')
        if kind:
            queryset = queryset.filter(kind=validate_kind(kind))
        return queryset.order_by('-created_at')

    def list_between(self, actor_id, target_id):
        """Every action the actor holds against one target."""
        return EngagementAction.objects.filter(
            actor_id=actor_id,
            target_id=target_id
        ).order_by('-created_at')


class ProfileUnlockService:
    """
    The profile-view flow: spend a token, and only then read the protected
    profile and notify its owner.
    """

    def __init__(self, ledger: ViewTokenLedger = None, directory: MemberDirectory = None,
                 notifier: EngagementNotifier = None):
        self.directory = directory or MemberDirectory()
        self.ledger = ledger or ViewTokenLedger(self.directory)
        self.notifier = notifier or EngagementNotifier()

    def unlock(self, viewer: Member, target_id) -> UnlockResult:
        """
        Raises:
            InsufficientTokens: before any read of the target's profile
            NotFoundError: unknown or inactive target
        """
        spend = self.ledger.spend_view_token(viewer.id, target_id)
        profile = self.directory.get_member(target_id)

        if spend.spent and settings.NOTIFY_ON_PROFILE_VIEW:
            self.notifier.profile_viewed(viewer, profile)

        return UnlockResult(spend=spend, profile=profile)
