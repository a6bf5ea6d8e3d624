# posting/views.py
"""Thin views that delegate to the posting commands."""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from universal.responses import invalid_request_response, result_response
from .commands import post_daily_sales
from .serializers import DailyPostingRequestSerializer


class DailyPostingView(APIView):
    """
    POST /api/v2/posting/daily/ -> post one branch's sales for one day

    Body: {"actor_user_id", "organization_id", "branch_id", "business_date"}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = DailyPostingRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer.errors)
        data = serializer.validated_data

        result = post_daily_sales(
            data["actor_user_id"],
            data["organization_id"],
            data["branch_id"],
            data["business_date"],
        )
        return result_response(result, status.HTTP_201_CREATED)
