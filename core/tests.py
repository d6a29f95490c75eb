"""
Tests for the shared API plumbing.

Test Cases:
1. Bearer-token authentication
2. Error envelope for expected and unexpected failures
3. Health check, unique numbers, JSON log formatting and wait_for_db
"""
import json
import logging
from datetime import timedelta
from io import StringIO
from types import SimpleNamespace
from unittest.mock import patch

import jwt
from django.conf import settings
from django.core.management import CommandError, call_command
from django.db import OperationalError, connections
from django.http import Http404
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from core.authentication import issue_token
from core.exceptions import InsufficientStockError, api_exception_handler
from core.logging import JsonFormatter
from core.numbering import generate_unique_number
from core.permissions import IsAdminOrReadOnly, IsAdminRole
from customers.models import Customer


def make_customer(email='erika@example.com', role=Customer.Role.CUSTOMER):
    customer = Customer(first_name='Erika', last_name='Mustermann', email=email, role=role)
    customer.set_password('geheim123')
    customer.save()
    return customer


class JWTAuthenticationTestCase(APITestCase):
    """Test cases for Authorization: Bearer <token>."""

    def setUp(self):
        self.customer = make_customer()

    def test_valid_token(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {issue_token(self.customer)}')

        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], 'erika@example.com')

    def test_missing_token(self):
        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['type'], 'AUTH_ERROR')
        self.assertEqual(response['WWW-Authenticate'], 'Bearer')

    def test_expired_token(self):
        now = timezone.now()
        token = jwt.encode(
            {'sub': str(self.customer.pk), 'iat': now - timedelta(days=2), 'exp': now - timedelta(days=1)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM
        )
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Token expired')

    def test_token_with_wrong_signature(self):
        token = jwt.encode({'sub': str(self.customer.pk)}, 'another-secret', algorithm='HS256')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Invalid token')

    def test_malformed_header(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer')

        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_disabled_account(self):
        token = issue_token(self.customer)
        self.customer.disable()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/customers/me/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_role_comes_from_database(self):
        """
        Given: A token issued while the account was an admin
        When: The account is demoted and the token reused
        Then: Admin endpoints are refused
        """
        admin = make_customer('chef@example.com', role=Customer.Role.ADMIN)
        token = issue_token(admin)
        admin.role = Customer.Role.CUSTOMER
        admin.save()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/customers/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PermissionTestCase(TestCase):

    def test_admin_role(self):
        admin = SimpleNamespace(is_authenticated=True, role=Customer.Role.ADMIN)
        customer = SimpleNamespace(is_authenticated=True, role=Customer.Role.CUSTOMER)

        self.assertTrue(IsAdminRole().has_permission(SimpleNamespace(user=admin), None))
        self.assertFalse(IsAdminRole().has_permission(SimpleNamespace(user=customer), None))
        self.assertFalse(IsAdminRole().has_permission(SimpleNamespace(user=None), None))

    def test_read_only_for_everyone(self):
        anonymous = SimpleNamespace(is_authenticated=False)

        self.assertTrue(IsAdminOrReadOnly().has_permission(SimpleNamespace(method='GET', user=anonymous), None))
        self.assertFalse(IsAdminOrReadOnly().has_permission(SimpleNamespace(method='POST', user=anonymous), None))


class ExceptionHandlerTestCase(TestCase):
    """Test cases for the error envelope."""

    def test_shop_error_details(self):
        response = api_exception_handler(InsufficientStockError('Lavendel', 10, 3), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['type'], 'INSUFFICIENT_STOCK')
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['item'], 'Lavendel')
        self.assertEqual(response.data['available'], '3')

    def test_not_found(self):
        response = api_exception_handler(Http404('Order 5 not found'), {})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['type'], 'NOT_FOUND')

    def test_database_unavailable(self):
        response = api_exception_handler(OperationalError('connection refused'), {})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data['type'], 'SERVICE_UNAVAILABLE')

    def test_unexpected_error_is_generic(self):
        with self.assertLogs('core.exceptions', level='ERROR'):
            response = api_exception_handler(RuntimeError('secret internals'), {})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['type'], 'INTERNAL_ERROR')
        self.assertNotIn('secret internals', response.data['message'])


class HealthCheckTestCase(TestCase):

    def test_healthy(self):
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'healthy', 'service': 'soapshop-api', 'database': 'ok'})


class NumberingTestCase(TestCase):

    def test_format(self):
        number = generate_unique_number(Customer, 'customer_number', prefix='KD', random_digits=3)

        self.assertRegex(number, r'^KD\d{13}$')

    @patch('core.numbering.secrets.randbelow', return_value=7)
    def test_collisions_fall_back_to_timestamp(self, mock_randbelow):
        first = make_customer()

        number = generate_unique_number(Customer, 'customer_number', prefix='KD', random_digits=3)

        self.assertTrue(first.customer_number.endswith('007'))
        self.assertTrue(number.startswith('KD'))
        self.assertNotEqual(number, first.customer_number)


class JsonFormatterTestCase(TestCase):

    def test_extra_fields(self):
        record = logging.LogRecord('orders.services', logging.INFO, __file__, 1, 'Order %s created', ('GM1',), None)
        record.order_number = 'GM1'

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload['message'], 'Order GM1 created')
        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['order_number'], 'GM1')
        self.assertNotIn('email_id', payload)


class WaitForDbCommandTestCase(TestCase):

    def test_database_available(self):
        out = StringIO()

        call_command('wait_for_db', attempts=1, delay=0, stdout=out)

        self.assertIn('Database available', out.getvalue())

    @patch('core.management.commands.wait_for_db.time.sleep')
    def test_gives_up_after_attempts(self, mock_sleep):
        with patch.object(connections['default'], 'ensure_connection', side_effect=OperationalError('refused')):
            with self.assertRaises(CommandError):
                call_command('wait_for_db', attempts=3, delay=0, stdout=StringIO())

        self.assertEqual(mock_sleep.call_count, 2)
