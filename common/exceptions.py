"""
Error types shared by the HMS apps and the DRF exception handler that renders
every failure in one envelope:

    {"success": false, "error": {"kind": "...", "message": "...", "details": ...}}
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import InterfaceError, OperationalError
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class HMSAPIException(exceptions.APIException):
    """Base class for domain errors; ``kind`` is the machine-readable category."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be processed.'
    default_code = 'error'
    kind = 'error'

    def __init__(self, detail=None, code=None, details=None):
        super().__init__(detail, code)
        self.details = details

    @property
    def message(self):
        return str(self.detail)


class NotFoundError(HMSAPIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'
    kind = 'not_found'


class ValidationFailedError(HMSAPIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation'
    kind = 'validation'


class ConflictError(HMSAPIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The resource was modified or already exists.'
    default_code = 'conflict'
    kind = 'conflict'


class StorageUnavailableError(HMSAPIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The database is temporarily unavailable. Please retry.'
    default_code = 'storage_unavailable'
    kind = 'storage_unavailable'


# DRF exception class -> error kind
EXCEPTION_KINDS = (
    (exceptions.ValidationError, 'validation'),
    (exceptions.ParseError, 'validation'),
    (exceptions.NotFound, 'not_found'),
    (exceptions.NotAuthenticated, 'not_authenticated'),
    (exceptions.AuthenticationFailed, 'not_authenticated'),
    (exceptions.PermissionDenied, 'permission_denied'),
    (exceptions.MethodNotAllowed, 'method_not_allowed'),
    (exceptions.UnsupportedMediaType, 'validation'),
    (exceptions.Throttled, 'throttled'),
)


def _kind_for(exc):
    if isinstance(exc, HMSAPIException):
        return exc.kind
    for exc_class, kind in EXCEPTION_KINDS:
        if isinstance(exc, exc_class):
            return kind
    return getattr(exc, 'default_code', 'error')


def hms_exception_handler(exc, context):
    """
    DRF ``EXCEPTION_HANDLER``: wraps DRF's default handler so every error
    response uses the HMS envelope.

    Database connectivity failures become ``storage_unavailable`` and Django
    model validation errors become ``validation``. Anything else DRF does
    not handle is left to Django (500 without a traceback unless DEBUG).
    """
    if isinstance(exc, (OperationalError, InterfaceError)):
        view = context.get('view')
        logger.error(f"Storage unavailable in {view.__class__.__name__ if view else 'unknown view'}: {exc}")
        exc = StorageUnavailableError()
    elif isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        exc = exceptions.ValidationError(detail=detail)

    response = exception_handler(exc, context)
    if response is None:
        return None

    kind = _kind_for(exc)
    error = {'kind': kind}

    if isinstance(exc, HMSAPIException):
        error['message'] = exc.message
        if exc.details is not None:
            error['details'] = exc.details
    elif isinstance(exc, exceptions.ValidationError):
        error['message'] = 'Invalid input.'
        error['details'] = response.data
    else:
        data = response.data
        error['message'] = str(data.get('detail', data)) if isinstance(data, dict) else str(data)

    response.data = {'success': False, 'error': error}
    return response
