# entities/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: actor resolution, validation, writes.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from universal.responses import invalid_request_response, result_response
from .commands import entity_crud
from .serializers import EntityRequestSerializer


class EntityCrudView(APIView):
    """
    POST /api/v2/entities/ -> entity CRUD

    Body: {"action", "actor_user_id", "organization_id", "entity",
           "dynamic_fields", "relationships", "options"}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = EntityRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)
        data = serializer.validated_data

        result = entity_crud(
            data["action"],
            data["actor_user_id"],
            data["organization_id"],
            entity=data["entity"],
            dynamic_fields=data["dynamic_fields"],
            relationships=data["relationships"],
            options=data["options"],
        )
        success_status = status.HTTP_201_CREATED if data["action"] == "CREATE" else status.HTTP_200_OK
        return result_response(result, success_status)
