from rest_framework import serializers
from .models import Member


class MemberSerializer(serializers.ModelSerializer):
    """Profile data returned once a profile is unlocked"""
    username = serializers.CharField(source="user.username", read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Member
        fields = [
            "id",
            "username",
            "display_name",
            "gender",
            "is_verified",
        ]


class MeSerializer(MemberSerializer):
    is_premium = serializers.BooleanField(read_only=True)

    class Meta(MemberSerializer.Meta):
        fields = MemberSerializer.Meta.fields + [
            "is_active",
            "is_premium",
            "premium_until",
            "view_tokens",
        ]
