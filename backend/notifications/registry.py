"""
Device registry: per-member push tokens, tagged by platform.
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from core.exceptions import ValidationError
from .gateways import mask_token
from .models import DeviceRegistration, DevicePlatform

logger = logging.getLogger(__name__)


def is_placeholder_token(token: str) -> bool:
    """True for values that can never be a real push token."""
    if not token or not token.strip():
        return True
    return any(marker in token for marker in settings.PUSH_TOKEN_PLACEHOLDERS)


class DeviceRegistry:
    """
    Owns DeviceRegistration rows. A (member, platform) slot holds at most one
    active token and a token belongs to at most one member at a time.
    """

    def register(self, member, platform: str, push_token: str,
                 device_label: str = "", ip: str = "") -> DeviceRegistration:
        """
        Saves or refreshes a registration when a client reports its push token.

        Args:
            member: Member instance owning the device
            platform: DevicePlatform value (mobile, web)
            push_token: FCM token string
            device_label: Free-form device description
            ip: Last known client address

        Returns:
            DeviceRegistration: the active registration for this token
        """
        push_token = (push_token or "").strip()
        if not push_token:
            raise ValidationError("Push token is required")
        if platform not in DevicePlatform.values:
            raise ValidationError(
                f"Invalid platform. Must be one of: {', '.join(DevicePlatform.values)}"
            )

        with transaction.atomic():
            registration = (
                DeviceRegistration.objects
                .select_for_update()
                .filter(member=member, platform=platform, push_token=push_token)
                .first()
            )

            if registration is not None and registration.is_active:
                if device_label:
                    registration.device_label = device_label
                registration.last_known_ip = ip or registration.last_known_ip
                registration.save(update_fields=['device_label', 'last_known_ip', 'updated_at'])
                logger.info(f"Device token refreshed for member {member.id} ({platform})")
                return registration

            self._release_slot(member, platform, push_token)

            if registration is not None:
                registration.is_active = True
                if device_label:
                    registration.device_label = device_label
                registration.last_known_ip = ip or registration.last_known_ip
                registration.save(update_fields=['is_active', 'device_label', 'last_known_ip', 'updated_at'])
                logger.info(f"Device token reactivated for member {member.id} ({platform})")
                return registration

            try:
                with transaction.atomic():
                    registration = DeviceRegistration.objects.create(
                        member=member,
                        platform=platform,
                        push_token=push_token,
                        device_label=device_label or "",
                        last_known_ip=ip or "",
                        is_active=True,
                    )
            except IntegrityError:
                # A concurrent registration of the same token won the insert
                return DeviceRegistration.objects.get(
                    member=member, platform=platform, push_token=push_token
                )
            logger.info(f"Device token created for member {member.id} ({platform})")
            return registration

    def _release_slot(self, member, platform, push_token):
        """Deactivates rows that would compete with a newly current token."""
        replaced = DeviceRegistration.objects.filter(
            member=member, platform=platform, is_active=True
        ).exclude(push_token=push_token).update(is_active=False)

        moved = DeviceRegistration.objects.filter(
            push_token=push_token, is_active=True
        ).exclude(member=member).update(is_active=False)

        if replaced or moved:
            logger.info(
                f"Released {replaced} stale token(s) for member {member.id} ({platform}) "
                f"and {moved} registration(s) of the same token on other members"
            )

    def list_active_tokens(self, member_ids: Iterable) -> Dict:
        """
        Returns a mapping member_id -> [push_token] of active, non-placeholder
        tokens. Members without usable tokens are absent from the mapping.
        """
        member_ids = list(member_ids)
        if not member_ids:
            return {}

        rows = DeviceRegistration.objects.filter(
            member_id__in=member_ids,
            is_active=True
        ).order_by('-updated_at').values_list('member_id', 'push_token')

        tokens = defaultdict(list)
        skipped = 0
        for member_id, push_token in rows:
            if is_placeholder_token(push_token):
                skipped += 1
                continue
            tokens[member_id].append(push_token)

        if skipped:
            logger.debug(f"Skipped {skipped} placeholder token(s)")
        return dict(tokens)

    def list_for_member(self, member_id) -> List[DeviceRegistration]:
        return list(
            DeviceRegistration.objects.filter(member_id=member_id, is_active=True)
            .order_by('-updated_at')
        )

    def deactivate(self, push_token: str) -> int:
        """Marks a token dead. Unknown or already inactive tokens are a no-op."""
        return self.deactivate_many([push_token])

    def deactivate_many(self, push_tokens: Iterable[str]) -> int:
        push_tokens = [token for token in push_tokens if token]
        if not push_tokens:
            return 0

        updated = DeviceRegistration.objects.filter(
            push_token__in=push_tokens,
            is_active=True
        ).update(is_active=False)

        if updated:
            logger.info(
                f"Deactivated {updated} device registration(s): "
                f"{', '.join(mask_token(token) for token in push_tokens)}"
            )
        return updated

    def deactivate_for_member(self, member_id, registration_id) -> bool:
        """User-initiated removal of one of the member's own devices."""
        try:
            updated = DeviceRegistration.objects.filter(
                id=registration_id,
                member_id=member_id,
                is_active=True
            ).update(is_active=False)
        except DjangoValidationError:
            return False
        return updated > 0

    def stats(self) -> dict:
        """Counts of active registrations for the admin dashboard."""
        placeholder_filter = Q(push_token__exact="")
        for marker in settings.PUSH_TOKEN_PLACEHOLDERS:
            placeholder_filter |= Q(push_token__contains=marker)

        active = DeviceRegistration.objects.filter(is_active=True)
        totals = active.aggregate(
            total=Count('id'),
            placeholders=Count('id', filter=placeholder_filter),
            mobile=Count('id', filter=Q(platform=DevicePlatform.MOBILE) & ~placeholder_filter),
            web=Count('id', filter=Q(platform=DevicePlatform.WEB) & ~placeholder_filter),
        )
        return {
            'total_device_tokens': totals['total'],
            'placeholder_tokens': totals['placeholders'],
            'valid_device_tokens': totals['total'] - totals['placeholders'],
            'mobile_tokens': totals['mobile'],
            'web_tokens': totals['web'],
        }
