# transactions/views.py
"""
Thin views that delegate to the commands layer.

Views handle: HTTP parsing, authentication, response formatting.
Commands handle: actor resolution, validation, writes.
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from universal.responses import invalid_request_response, result_response
from .commands import txn_crud
from .serializers import TransactionRequestSerializer


class TransactionCrudView(APIView):
    """
    POST /api/v2/transactions/ -> transaction CRUD

    Body: {"action", "actor_user_id", "organization_id", "transaction",
           "lines", "options"}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = TransactionRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)
        data = serializer.validated_data

        result = txn_crud(
            data["action"],
            data["actor_user_id"],
            data["organization_id"],
            transaction=data["transaction"],
            lines=data["lines"],
            options=data["options"],
        )
        created = data["action"] in ("CREATE", "REVERSE")
        return result_response(result, status.HTTP_201_CREATED if created else status.HTTP_200_OK)
