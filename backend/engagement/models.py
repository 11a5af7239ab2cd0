import uuid
from django.db import models
from members.models import Member


class ActionKind(models.TextChoices):
    """
    Profile actions. The kinds are independent flags between two members,
    not steps of one relationship status.
    """
    INTEREST = 'interest', 'Interest'
    SHORTLIST = 'shortlist', 'Shortlist'
    REJECT = 'reject', 'Reject'
    ACCEPT = 'accept', 'Accept'


class ViewRecord(models.Model):
    """
    Records that a viewer has unlocked a profile. Written once per pair,
    never updated or deleted: later views of the same profile are free.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    viewer = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="unlocked_profiles")
    viewed = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="profile_unlocks")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'engagement_view_record'
        constraints = [
            models.UniqueConstraint(fields=['viewer', 'viewed'], name='unique_viewer_viewed'),
        ]
        indexes = [
            models.Index(fields=['viewed', 'created_at'], name='viewrecord_viewed_idx'),
        ]

    def __str__(self):
        return f"{self.viewer_id} unlocked {self.viewed_id}"


class EngagementAction(models.Model):
    """
    One (actor, target, kind) action. Repeating the same kind refreshes
    updated_at; withdrawing deletes the row.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="actions_sent")
    target = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="actions_received")
    kind = models.CharField(
        max_length=20,
        choices=ActionKind.choices,
        help_text="Type of profile action: interest, shortlist, reject, accept"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'engagement_action'
        constraints = [
            models.UniqueConstraint(fields=['actor', 'target', 'kind'], name='unique_actor_target_kind'),
        ]
        indexes = [
            models.Index(fields=['actor', 'kind', 'created_at'], name='action_actor_idx'),
            models.Index(fields=['target', 'kind', 'created_at'], name='action_target_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.actor_id} - {self.kind} - {self.target_id}"
