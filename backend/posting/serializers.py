# posting/serializers.py
"""Request envelope for the daily posting API."""

from rest_framework import serializers


class DailyPostingRequestSerializer(serializers.Serializer):
    actor_user_id = serializers.UUIDField()
    organization_id = serializers.UUIDField()
    branch_id = serializers.UUIDField()
    business_date = serializers.DateField()
