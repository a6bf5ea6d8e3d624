# relationships/serializers.py
"""Request envelope for the relationship API."""

from rest_framework import serializers

from .commands import RELATIONSHIP_ACTIONS


class RelationshipRequestSerializer(serializers.Serializer):
    action = serializers.CharField()
    actor_user_id = serializers.UUIDField()
    organization_id = serializers.UUIDField()
    payload = serializers.DictField(required=False, default=dict)

    def validate_action(self, value):
        value = value.upper()
        if value not in RELATIONSHIP_ACTIONS:
            raise serializers.ValidationError(f"Must be one of {', '.join(sorted(RELATIONSHIP_ACTIONS))}.")
        return value
