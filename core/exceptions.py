import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler


logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
VALIDATION_FAILED_MESSAGE = "Validation failed"


def _detail_message(data):
    if isinstance(data, dict) and "detail" in data:
        return str(data["detail"])
    if isinstance(data, list) and data:
        return str(data[0])
    return str(data)


def envelope_exception_handler(exc, context):
    """Render every API error as ``{"success": false, "message": ...}``."""
    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled error in %s",
            view.__class__.__name__ if view is not None else "request",
        )
        return Response(
            {"success": False, "message": INTERNAL_ERROR_MESSAGE},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        errors = response.data
        if not isinstance(errors, dict):
            errors = {"non_field_errors": errors}
        response.data = {
            "success": False,
            "message": VALIDATION_FAILED_MESSAGE,
            "errors": errors,
        }
        return response

    response.data = {"success": False, "message": _detail_message(response.data)}
    return response
