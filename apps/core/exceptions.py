"""
Error taxonomy shared by every service, and the DRF exception handler that
renders it into the response envelope.

Services raise these classes. Views never build error responses by hand.
"""
import logging

from django.core.exceptions import (
    PermissionDenied as DjangoPermissionDenied,
    ValidationError as DjangoValidationError,
)
from django.db import DatabaseError, IntegrityError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal server error.'
    default_code = 'error'
    retryable = False

    def __init__(self, detail=None, code=None, details=None):
        super().__init__(detail, code)
        self.details = details


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_error'


class InvalidDateError(ValidationError):
    default_detail = 'Invalid date.'
    default_code = 'invalid_date'


class HolidayError(ValidationError):
    default_detail = 'Attendance cannot be marked on a holiday.'
    default_code = 'holiday'


class ConflictingServiceError(ValidationError):
    default_detail = 'Student cannot have both hostel and transportation services'
    default_code = 'conflicting_service'


class InvalidPaymentModeError(ValidationError):
    default_detail = 'Payment mode is not enabled for this school.'
    default_code = 'invalid_payment_mode'


class FeeConfigurationError(ValidationError):
    default_detail = 'Fee is not configured.'
    default_code = 'fee_configuration'


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'permission_denied'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with existing data.'
    default_code = 'conflict'


class AmbiguousPricingError(ConflictError):
    default_detail = 'More than one active price matches this fee period.'
    default_code = 'ambiguous_pricing'


class DuplicateFeeError(ConflictError):
    default_detail = 'Fee already generated for this month.'
    default_code = 'duplicate_fee'


class StorageError(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'The database is temporarily unavailable. Please retry.'
    default_code = 'storage_error'
    retryable = True


def error_body(message, code, details=None):
    error = {'message': message, 'code': code}
    if details:
        error['details'] = details
    return {'success': False, 'message': message, 'error': error}


def _translate(exc):
    """Map framework and database exceptions onto the taxonomy"""
    if isinstance(exc, Http404):
        return NotFoundError(str(exc) or None)
    if isinstance(exc, DjangoPermissionDenied):
        return PermissionDeniedError(str(exc) or None)
    if isinstance(exc, DjangoValidationError):
        details = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return ValidationError(exc.messages[0] if exc.messages else None, details=details)
    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error surfaced as conflict: %s", exc)
        return ConflictError()
    if isinstance(exc, DatabaseError):
        logger.exception("Storage failure while handling request")
        return StorageError()
    return exc


def _describe(exc, data):
    """Return (message, code, details) for an exception already rendered by DRF"""
    if isinstance(exc, ServiceError):
        return str(exc.detail), exc.default_code, exc.details

    code = getattr(exc, 'default_code', 'error')
    if isinstance(data, dict) and set(data.keys()) == {'detail'}:
        return str(data['detail']), code, None
    if isinstance(data, list) and data:
        return str(data[0]), code, data
    if isinstance(data, dict):
        return 'Invalid input.', code, data
    return str(data), code, None


def envelope_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER. The HTTP status is authoritative and the body's
    `success` flag always agrees with it.
    """
    exc = _translate(exc)
    response = exception_handler(exc, context)
    if response is None:
        return None

    message, code, details = _describe(exc, response.data)
    response.data = error_body(message, code, details)
    return response
