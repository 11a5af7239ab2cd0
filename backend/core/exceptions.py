"""
Error taxonomy shared by the engagement and notification services, and the
DRF exception handler that turns it into HTTP responses.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class EngagementError(Exception):
    """Base class for domain errors raised by the services."""
    code = 'ENGAGEMENT_ERROR'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request could not be processed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(EngagementError):
    """Malformed input, rejected before storage is touched."""
    code = 'VALIDATION_ERROR'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input'


class NotFoundError(EngagementError):
    code = 'NOT_FOUND'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Member not found'


class InsufficientTokens(EngagementError):
    """
    The viewer has no profile view tokens left. This is an expected business
    outcome: clients render it as an upgrade prompt.
    """
    code = 'INSUFFICIENT_TOKENS'
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = (
        'You have used all your profile view tokens. '
        'Please upgrade your subscription to view more profiles.'
    )


class DispatchError(Exception):
    """Base class for push delivery failures. Never leaves the dispatcher."""

    def __init__(self, reason, token=None):
        self.reason = reason
        self.token = token
        super().__init__(reason)


class TransientDispatchError(DispatchError):
    """Gateway timeout, rate limit or outage. Counted as failed, not retried."""


class PermanentTokenError(DispatchError):
    """The gateway reports the device token as dead."""


def exception_handler(exc, context):
    """
    DRF exception handler.

    Domain errors become a response with a stable ``code``; DRF's own
    exceptions keep the default handling; anything else is logged and
    collapsed to a generic message so no storage detail leaks.
    """
    if isinstance(exc, EngagementError):
        return Response(
            {'code': exc.code, 'message': exc.message},
            status=exc.status_code
        )

    response = drf_exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}")
    return Response(
        {'code': 'INTERNAL_ERROR', 'message': GENERIC_ERROR_MESSAGE},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
