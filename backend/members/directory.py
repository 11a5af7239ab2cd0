"""
Read-only access to the member directory for the engagement and
notification services.
"""
from datetime import timedelta
from typing import List

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from core.exceptions import NotFoundError, ValidationError
from .models import Member


class Segment:
    """Broadcast audiences understood by resolve_segment()"""
    ALL = 'all'
    PREMIUM = 'premium'
    RECENTLY_ACTIVE = 'recently_active'

    CHOICES = [ALL, PREMIUM, RECENTLY_ACTIVE]


class MemberDirectory:
    """
    Lookup service over Member records. Never writes.
    """

    def get_member(self, member_id, require_active: bool = True) -> Member:
        """
        Returns the member with the given id.

        Raises:
            NotFoundError: unknown id, malformed id, or inactive member when
                require_active is set
        """
        try:
            member = Member.objects.select_related('user').get(id=member_id)
        except (Member.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            raise NotFoundError(f"Member {member_id} not found")

        if require_active and not member.is_active:
            raise NotFoundError(f"Member {member_id} not found")
        return member

    def for_user(self, user) -> Member:
        """Resolves the member record of an authenticated account."""
        try:
            return Member.objects.select_related('user').get(user=user)
        except Member.DoesNotExist:
            raise NotFoundError("No member profile for this account")

    def resolve_segment(self, segment: str) -> List:
        """
        Returns the ids of active members in a broadcast segment.

        Args:
            segment: one of Segment.CHOICES
        """
        queryset = Member.objects.filter(is_active=True)

        if segment == Segment.ALL:
            pass
        elif segment == Segment.PREMIUM:
            queryset = queryset.filter(premium_until__gt=timezone.now())
        elif segment == Segment.RECENTLY_ACTIVE:
            cutoff = timezone.now() - timedelta(days=settings.RECENTLY_ACTIVE_DAYS)
            queryset = queryset.filter(last_active_at__gte=cutoff)
        else:
            raise ValidationError(
                f"Invalid segment. Must be one of: {', '.join(Segment.CHOICES)}"
            )

        return list(queryset.values_list('id', flat=True))
