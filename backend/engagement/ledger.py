"""
View-token ledger: the metered allowance of full profiles a member may
unlock.

The balance lives on the Member row and is only ever changed with a
conditional UPDATE, so concurrent spends by the same viewer serialize on
that row across processes without any in-process lock.
"""
import logging
import uuid
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.db.models import F

from core.exceptions import InsufficientTokens, ValidationError
from members.directory import MemberDirectory
from members.models import Member
from .models import ViewRecord

logger = logging.getLogger(__name__)


@dataclass
class SpendResult:
    """Outcome of a spend_view_token() call."""
    already_unlocked: bool
    spent: bool


def same_member(first_id, second_id) -> bool:
    try:
        return uuid.UUID(str(first_id)) == uuid.UUID(str(second_id))
    except ValueError:
        return str(first_id) == str(second_id)


class ViewTokenLedger:
    """
    Owns each member's remaining profile view tokens and the ViewRecord
    audit trail.
    """

    def __init__(self, directory: MemberDirectory = None):
        self.directory = directory or MemberDirectory()

    def spend_view_token(self, viewer_id, target_id) -> SpendResult:
        """
        Unlocks target's profile for viewer, spending one token the first
        time only.

        - Self view: free, the ledger is not touched.
        - Already unlocked: free.
        - Otherwise the conditional decrement and the ViewRecord insert
          commit together or not at all.

        Raises:
            NotFoundError: viewer or target unknown or inactive
            InsufficientTokens: no token left for a first view
        """
        if same_member(viewer_id, target_id):
            return SpendResult(already_unlocked=True, spent=False)

        viewer = self.directory.get_member(viewer_id)
        target = self.directory.get_member(target_id)

        if self.has_unlocked(viewer.id, target.id):
            return SpendResult(already_unlocked=True, spent=False)

        try:
            with transaction.atomic():
                updated = Member.objects.filter(
                    id=viewer.id,
                    view_tokens__gt=0
                ).update(view_tokens=F('view_tokens') - 1)

                if updated == 0:
                    logger.info(f"Member {viewer.id} has no view tokens left to unlock {target.id}")
                    raise InsufficientTokens()

                ViewRecord.objects.create(viewer=viewer, viewed=target)
        except IntegrityError:
            # A concurrent request unlocked the same pair first; our
            # decrement was rolled back with the failed insert.
            return SpendResult(already_unlocked=True, spent=False)

        logger.info(f"Member {viewer.id} spent a view token on {target.id}")
        return SpendResult(already_unlocked=False, spent=True)

    def has_unlocked(self, viewer_id, target_id) -> bool:
        return ViewRecord.objects.filter(viewer_id=viewer_id, viewed_id=target_id).exists()

    def remaining_view_tokens(self, member_id) -> int:
        member = self.directory.get_member(member_id, require_active=False)
        return member.view_tokens

    def credit_view_tokens(self, member_id, amount: int) -> int:
        """
        Adds tokens after a plan purchase.

        Returns:
            int: the new balance
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError("Token amount must be a positive integer")

        member = self.directory.get_member(member_id, require_active=False)
        with transaction.atomic():
            Member.objects.filter(id=member.id).update(view_tokens=F('view_tokens') + amount)
            balance = Member.objects.values_list('view_tokens', flat=True).get(id=member.id)

        logger.info(f"Credited {amount} view token(s) to member {member.id}; balance {balance}")
        return balance
