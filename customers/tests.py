"""
Tests for customer accounts.

Test Cases:
1. Registration with password rules and unique e-mail
2. Login issues a token, disabled accounts cannot log in
3. Self-service profile and admin management
"""
from rest_framework import status
from rest_framework.test import APITestCase

from core.authentication import decode_token
from customers.models import Customer

REGISTRATION = {
    'first_name': 'Erika',
    'last_name': 'Mustermann',
    'email': 'Erika@Example.com',
    'password': 'seife2024',
    'street': 'Hauptstraße',
    'postal_code': '12345',
    'city': 'Berlin',
}


class RegistrationTestCase(APITestCase):
    """Test cases for POST /api/auth/register/."""

    def test_register_returns_token(self):
        response = self.client.post('/api/auth/register/', REGISTRATION, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        customer = Customer.objects.get()
        self.assertEqual(customer.email, 'erika@example.com')
        self.assertEqual(customer.role, Customer.Role.CUSTOMER)
        self.assertTrue(customer.check_password('seife2024'))
        self.assertRegex(customer.customer_number, r'^KD\d{13}$')

        payload = decode_token(response.data['data']['token'])
        self.assertEqual(payload['sub'], str(customer.pk))
        self.assertNotIn('password', response.data['data']['customer'])

    def test_role_cannot_be_chosen(self):
        self.client.post('/api/auth/register/', dict(REGISTRATION, role='admin'), format='json')

        self.assertEqual(Customer.objects.get().role, Customer.Role.CUSTOMER)

    def test_weak_passwords_rejected(self):
        for password in ('kurz1', 'nurbuchstaben', '1234567890'):
            response = self.client.post(
                '/api/auth/register/', dict(REGISTRATION, password=password), format='json'
            )
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertTrue(response.json()['message'].startswith('password:'))

        self.assertFalse(Customer.objects.exists())

    def test_duplicate_email_rejected(self):
        self.client.post('/api/auth/register/', REGISTRATION, format='json')

        response = self.client.post(
            '/api/auth/register/', dict(REGISTRATION, email='erika@example.com'), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Customer.objects.count(), 1)


class AccountTestCase(APITestCase):
    """Test cases for login, profile and admin management."""

    def setUp(self):
        self.customer = Customer(first_name='Erika', last_name='Mustermann', email='erika@example.com')
        self.customer.set_password('seife2024')
        self.customer.save()
        self.admin = Customer(first_name='Ada', last_name='Admin', email='admin@example.com',
                              role=Customer.Role.ADMIN)
        self.admin.set_password('admin2024')
        self.admin.save()

    def test_login(self):
        response = self.client.post(
            '/api/auth/login/', {'email': 'ERIKA@example.com', 'password': 'seife2024'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['customer']['email'], 'erika@example.com')
        self.customer.refresh_from_db()
        self.assertIsNotNone(self.customer.last_login_at)

    def test_login_wrong_password(self):
        response = self.client.post(
            '/api/auth/login/', {'email': 'erika@example.com', 'password': 'falsch123'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['type'], 'AUTH_ERROR')

    def test_disabled_account_cannot_log_in(self):
        self.customer.disable()

        response = self.client.post(
            '/api/auth/login/', {'email': 'erika@example.com', 'password': 'seife2024'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()['message'], 'Account disabled')

    def test_update_own_profile(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.patch(
            '/api/customers/me/', {'city': 'Hamburg', 'role': 'admin'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.city, 'Hamburg')
        self.assertEqual(self.customer.role, Customer.Role.CUSTOMER)

    def test_customer_list_is_admin_only(self):
        self.client.force_authenticate(user=self.customer)
        self.assertEqual(self.client.get('/api/customers/').status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/customers/', {'role': 'kunde'})
        self.assertEqual([row['email'] for row in response.data], ['erika@example.com'])

    def test_admin_disables_account(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(f'/api/customers/{self.customer.pk}/disable/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertFalse(self.customer.is_active)
        self.assertTrue(Customer.objects.filter(pk=self.customer.pk).exists())

    def test_disable_unknown_customer(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/customers/999999/disable/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()['type'], 'NOT_FOUND')
