# universal/responses.py
"""
CommandResult -> HTTP response.

    validation  -> 400
    not_found   -> 404
    consistency -> 409
"""

from rest_framework import status
from rest_framework.response import Response

from universal.results import ErrorCode


CATEGORY_STATUS = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "consistency": status.HTTP_409_CONFLICT,
}


def result_response(result, success_status=status.HTTP_200_OK) -> Response:
    if result.success:
        return Response(result.to_dict(), status=success_status)
    return Response(result.to_dict(), status=CATEGORY_STATUS[ErrorCode.category(result.code)])


def invalid_request_response(errors) -> Response:
    """Envelope validation failure from a request serializer."""
    return Response(
        {
            "success": False,
            "error": {
                "code": ErrorCode.VALIDATION_ERROR,
                "message": "Invalid request.",
                "details": errors,
            },
        },
        status=status.HTTP_400_BAD_REQUEST,
    )
