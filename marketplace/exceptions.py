"""
Domain errors raised by the booking ledger.

Every error carries the HTTP status it maps to and a short machine-readable
code, so views can render ``{"message": ..., "error": ...}`` without knowing
the individual exception types.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for all booking ledger failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = 'LedgerError'
    default_message = 'Booking ledger operation failed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_response_data(self):
        return {'message': self.message, 'error': self.error_code}


class BookingValidationError(LedgerError):
    """Malformed input: non-positive quantity, inverted dates, unknown status."""

    error_code = 'ValidationError'
    default_message = 'Invalid booking data.'


class InsufficientCapacity(LedgerError):
    error_code = 'InsufficientCapacity'
    default_message = 'Insufficient capacity available'


class InvalidTransition(LedgerError):
    error_code = 'InvalidTransition'
    default_message = 'Invalid booking status transition.'


class AlreadyTerminal(LedgerError):
    """The booking is already in the requested terminal status."""

    error_code = 'AlreadyTerminal'
    default_message = 'Booking is already in a terminal status.'


class NotAuthorized(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = 'NotAuthorized'
    default_message = 'Not authorized'


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = 'NotFound'
    default_message = 'Not found'


class ConcurrentModification(LedgerError):
    """Optimistic update kept losing races and the retry budget ran out."""

    status_code = status.HTTP_409_CONFLICT
    error_code = 'ConcurrentModification'
    default_message = 'The facility was modified concurrently. Please retry.'


def api_exception_handler(exc, context):
    """
    DRF exception handler rendering every failure as ``{"message", "error"}``.

    Ledger errors keep their own status; DRF errors keep theirs with the
    exception class name as the error code; anything else is logged and
    becomes a 500.
    """
    if isinstance(exc, LedgerError):
        return Response(exc.as_response_data(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get('detail') if isinstance(response.data, dict) else None
        if detail is not None:
            response.data = {'message': str(detail), 'error': exc.__class__.__name__}
        else:
            response.data = {'message': 'Validation failed', 'error': response.data}
        return response

    view = context.get('view')
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc!r}",
        exc_info=exc,
    )
    return Response(
        {'message': 'An unexpected error occurred.', 'error': 'Unexpected'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
