"""
Bearer-token authentication for the API.

Tokens are HS256 JWTs signed with ``settings.JWT_SECRET``. The token names
the customer (``sub``); the role is always taken from the database record so
a stale token can never widen permissions.
"""
import logging

import jwt
from django.conf import settings
from django.utils import timezone
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed

from customers.models import Customer

logger = logging.getLogger(__name__)


def issue_token(customer: Customer) -> str:
    now = timezone.now()
    payload = {
        'sub': str(customer.pk),
        'role': customer.role,
        'email': customer.email,
        'iat': now,
        'exp': now + settings.JWT_LIFETIME,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationFailed('Token expired') from exc
    except jwt.PyJWTError as exc:
        raise AuthenticationFailed('Invalid token') from exc


class JWTAuthentication(BaseAuthentication):
    """
    ``Authorization: Bearer <token>``.

    No header means anonymous; a malformed or invalid token is rejected
    with 401 rather than silently treated as anonymous.
    """
    keyword = b'bearer'

    def authenticate(self, request):
        parts = get_authorization_header(request).split()
        if not parts or parts[0].lower() != self.keyword:
            return None
        if len(parts) != 2:
            raise AuthenticationFailed('Malformed Authorization header')

        payload = decode_token(parts[1].decode('utf-8', errors='replace'))
        customer = Customer.objects.filter(pk=payload.get('sub'), is_active=True).first()
        if customer is None:
            logger.warning(f"Token for unknown or disabled customer {payload.get('sub')}")
            raise AuthenticationFailed('Account not found or disabled')
        return customer, payload

    def authenticate_header(self, request):
        return 'Bearer'
