from rest_framework import serializers

from members.serializers import MemberSerializer
from .models import EngagementAction, ActionKind


class EngagementActionSerializer(serializers.ModelSerializer):
    """Serializer for EngagementAction model"""
    actor_id = serializers.UUIDField(read_only=True)
    target_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = EngagementAction
        fields = [
            'id',
            'actor_id',
            'target_id',
            'kind',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class SentActionSerializer(EngagementActionSerializer):
    """Action as seen by its actor, with the target's public card"""
    target = MemberSerializer(read_only=True)

    class Meta(EngagementActionSerializer.Meta):
        fields = EngagementActionSerializer.Meta.fields + ['target']
        read_only_fields = fields


class ReceivedActionSerializer(EngagementActionSerializer):
    """Action as seen by its target, with the actor's public card"""
    actor = MemberSerializer(read_only=True)

    class Meta(EngagementActionSerializer.Meta):
        fields = EngagementActionSerializer.Meta.fields + ['actor']
        read_only_fields = fields


class EngagementActionRequestSerializer(serializers.Serializer):
    """Payload for recording or withdrawing an action"""
    actor_id = serializers.UUIDField(required=False)
    target_id = serializers.UUIDField()
    kind = serializers.ChoiceField(choices=ActionKind.choices)


class ActionListParamsSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=ActionKind.choices, required=False)


class ProfileViewRequestSerializer(serializers.Serializer):
    """Payload for unlocking a profile"""
    viewer_id = serializers.UUIDField(required=False)
    target_id = serializers.UUIDField()
