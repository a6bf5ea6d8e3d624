# relationships/views.py
"""Thin views that delegate to the relationship commands."""

from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from universal.responses import invalid_request_response, result_response
from .commands import relationship_crud
from .serializers import RelationshipRequestSerializer


class RelationshipCrudView(APIView):
    """
    POST /api/v2/relationships/ -> upsert/list/close/reassign, status workflow

    Body: {"action", "actor_user_id", "organization_id", "payload"}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = RelationshipRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)
        data = serializer.validated_data

        result = relationship_crud(
            data["action"],
            data["actor_user_id"],
            data["organization_id"],
            payload=data["payload"],
        )
        return result_response(result)
