import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


def default_view_tokens():
    return settings.DEFAULT_VIEW_TOKENS


class Gender(models.TextChoices):
    """Enumeration for member gender"""
    MALE = 'MALE', 'Male'
    FEMALE = 'FEMALE', 'Female'
    OTHER = 'OTHER', 'Other'


class Member(models.Model):
    """
    Directory view of a matrimony member. Identity, registration and
    verification are owned by the account module; this app only reads them.

    ``view_tokens`` is the remaining profile view allowance. It is changed
    exclusively through ``engagement.ledger``.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="member"
    )
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    gender = models.CharField(max_length=10, choices=Gender.choices, blank=True, default="")
    is_active = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    view_tokens = models.IntegerField(validators=[MinValueValidator(0)], default=default_view_tokens)
    premium_until = models.DateTimeField(null=True, blank=True)
    last_active_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'members_member'
        constraints = [
            models.CheckConstraint(
                condition=models.Q(view_tokens__gte=0),
                name='member_view_tokens_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['is_active', 'last_active_at'], name='member_active_seen_idx'),
            models.Index(fields=['is_active', 'premium_until'], name='member_active_premium_idx'),
        ]

    def __str__(self):
        return f"{self.display_name} ({self.id})"

    @property
    def display_name(self):
        return self.user.get_full_name() or self.user.get_username()

    @property
    def is_premium(self):
        return self.premium_until is not None and self.premium_until > timezone.now()
