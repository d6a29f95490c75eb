"""
Error taxonomy shared by all apps and the DRF exception handler that turns
it into the ``{success: false, message, type}`` envelope.

    ValidationError          400  malformed input or business-rule violation
    InsufficientStockError   400  stock reservation would go below zero
    IllegalTransitionError   400  order status change not allowed
    AuthenticationError      401  missing or invalid token
    AuthorizationError       403  wrong role
    NotFoundError            404  missing record
    ServiceUnavailableError  503  database unreachable
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.db import InterfaceError, OperationalError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base class for expected, client-facing errors."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = 'INTERNAL_ERROR'
    default_message = 'An unexpected error occurred'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(ShopError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = 'VALIDATION_ERROR'
    default_message = 'Invalid input'


class InsufficientStockError(ValidationError):
    """Raised when there's not enough stock for a reservation."""
    error_type = 'INSUFFICIENT_STOCK'

    def __init__(self, item_name: str, requested: Decimal, available: Decimal):
        self.item_name = item_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}: "
            f"requested {requested}, available {available}",
            item=item_name,
            requested=str(requested),
            available=str(available),
        )


class IllegalTransitionError(ValidationError):
    error_type = 'ILLEGAL_TRANSITION'

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Status change from '{current}' to '{target}' is not allowed",
            current=current,
            target=target,
        )


class AuthenticationError(ShopError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = 'AUTH_ERROR'
    default_message = 'Authentication failed'


class AuthorizationError(ShopError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = 'AUTHORIZATION_ERROR'
    default_message = 'Insufficient permissions'


class NotFoundError(ShopError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = 'NOT_FOUND'
    default_message = 'Not found'


class ServiceUnavailableError(ShopError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = 'SERVICE_UNAVAILABLE'
    default_message = 'Service temporarily unavailable'


def _error_response(message, error_type, status_code, **extra):
    body = {'success': False, 'message': message, 'type': error_type}
    body.update(extra)
    return Response(body, status=status_code)


def _first_error(detail):
    """Flatten a DRF error detail structure into one readable message."""
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_error(value)
            if field == 'non_field_errors':
                return message
            return f"{field}: {message}"
    if isinstance(detail, list) and detail:
        return _first_error(detail[0])
    return str(detail)


def api_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER.

    Expected errors become a structured 4xx response immediately. Anything
    unexpected is logged with traceback and answered with a generic 500
    (full detail only when DEBUG is on).
    """
    if isinstance(exc, ShopError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_type}: {exc.message}")
        else:
            logger.warning(f"{exc.error_type}: {exc.message}")
        return _error_response(exc.message, exc.error_type, exc.status_code, **exc.details)

    if isinstance(exc, (Http404, ObjectDoesNotExist)):
        return _error_response(
            str(exc) or 'Not found', NotFoundError.error_type, status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error(f"Database unavailable: {exc}")
        return _error_response(
            'Database temporarily unavailable',
            ServiceUnavailableError.error_type,
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = exception_handler(exc, context)
    if response is not None:
        if isinstance(exc, drf_exceptions.ValidationError):
            return _error_response(
                _first_error(exc.detail),
                ValidationError.error_type,
                response.status_code,
                errors=response.data,
            )
        if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
            error_type = AuthenticationError.error_type
        elif isinstance(exc, drf_exceptions.PermissionDenied):
            error_type = AuthorizationError.error_type
        elif isinstance(exc, drf_exceptions.NotFound):
            error_type = NotFoundError.error_type
        else:
            error_type = 'REQUEST_ERROR'
        error_response = _error_response(_first_error(exc.detail), error_type, response.status_code)
        for header in ('WWW-Authenticate', 'Retry-After'):
            if header in response:
                error_response[header] = response[header]
        return error_response

    view = context.get('view')
    logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
    message = str(exc) if settings.DEBUG else 'An unexpected error occurred'
    return _error_response(
        message, ShopError.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
