"""
Domain errors and the DRF exception handler.

Services raise FeedError subclasses for expected rejections (bad input,
missing targets, duplicates, limits). Each carries a machine-readable
``kind`` and an HTTP status; the handler below renders all of them as:

    {"error": "<human readable>", "kind": "<machine readable>"}

Infrastructure faults (DatabaseError and friends) are not FeedErrors. They
propagate out of primary operations and end up as a logged 500.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import exceptions, status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class FeedError(Exception):
    kind = 'internal'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message=None):
        self.message = message or self.kind
        super().__init__(self.message)


class Unauthenticated(FeedError):
    kind = 'unauthenticated'
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidArgument(FeedError):
    kind = 'invalid-argument'
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(FeedError):
    kind = 'not-found'
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyExists(FeedError):
    kind = 'already-exists'
    status_code = status.HTTP_409_CONFLICT


class FailedPrecondition(FeedError):
    kind = 'failed-precondition'
    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(FeedError):
    kind = 'permission-denied'
    status_code = status.HTTP_403_FORBIDDEN


class ResourceExhausted(FeedError):
    kind = 'resource-exhausted'
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


STATUS_KINDS = {
    status.HTTP_400_BAD_REQUEST: InvalidArgument.kind,
    status.HTTP_401_UNAUTHORIZED: Unauthenticated.kind,
    status.HTTP_403_FORBIDDEN: PermissionDenied.kind,
    status.HTTP_404_NOT_FOUND: NotFound.kind,
    status.HTTP_429_TOO_MANY_REQUESTS: ResourceExhausted.kind,
}


def _drf_kind(exc, status_code):
    # Session auth answers 403 for anonymous users, not 401
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return Unauthenticated.kind
    return STATUS_KINDS.get(status_code, getattr(exc, 'default_code', 'error'))


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Renders FeedErrors with their kind
    2. Converts Django exceptions to DRF responses
    3. Logs anything unexpected
    """
    if isinstance(exc, FeedError):
        return Response(
            {'error': exc.message, 'kind': exc.kind},
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'kind': _drf_kind(exc, response.status_code),
                'details': response.data
            }
        return response

    if isinstance(exc, IntegrityError):
        logger.warning(f"IntegrityError: {exc}")
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.', 'kind': AlreadyExists.kind},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ValueError):
        return Response(
            {'error': str(exc), 'kind': InvalidArgument.kind},
            status=status.HTTP_400_BAD_REQUEST
        )

    logger.exception(f"Unhandled exception: {exc}")

    return Response(
        {'error': 'An unexpected error occurred.', 'kind': FeedError.kind},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
