"""
Tests for inquiries (Anfragen).

Test Cases:
1. Customers submit inquiries, admins accept or reject them once
2. Paying an accepted inquiry creates a paid order
3. Pending, rejected, foreign and already paid inquiries cannot be paid
4. Inquiry endpoints and permissions
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from customers.models import Customer
from inquiries import services
from inquiries.models import Inquiry
from inventory.models import Packaging, Product, RawSoap
from notifications.models import EmailOut
from orders.models import Order


def make_customer(email, role=Customer.Role.CUSTOMER, **extra):
    customer = Customer(first_name='Erika', last_name='Mustermann', email=email, role=role, **extra)
    customer.set_password('geheim123')
    customer.save()
    return customer


class InquiryTestBase(TestCase):

    def setUp(self):
        soap = RawSoap.objects.create(name='Ziegenmilch', purchase_price=Decimal('20.00'),
                                      quantity=Decimal('5000'))
        box = Packaging.objects.create(name='Schachtel', purchase_price=Decimal('5.00'),
                                       package_quantity=10, quantity=Decimal('50'))
        self.product = Product.objects.create(
            name='Hochzeitsseife', price=Decimal('4.50'), weight_grams=Decimal('80'),
            raw_soap=soap, packaging=box
        )
        self.customer = make_customer(
            'erika@example.com', street='Hauptstraße', house_number='1',
            postal_code='12345', city='Berlin'
        )
        self.other = make_customer('max@example.com')

    def submit(self, quantity=20):
        return services.create_inquiry(
            self.customer,
            [{'product_id': self.product.id, 'quantity': quantity}],
            {'customer_note': 'Für eine Hochzeit'}
        )


class InquiryLifecycleTestCase(InquiryTestBase):
    """Test cases for answering inquiries."""

    def test_create_copies_profile_address(self):
        inquiry = self.submit()

        self.assertRegex(inquiry.inquiry_id, r'^INQ\d{13}$')
        self.assertEqual(inquiry.status, Inquiry.Status.PENDING)
        self.assertEqual(inquiry.total, Decimal('90.00'))
        self.assertEqual(inquiry.city, 'Berlin')
        self.assertEqual(inquiry.items.get().product_name, 'Hochzeitsseife')

    def test_accept_sends_email(self):
        inquiry = self.submit()

        inquiry = services.accept_inquiry(inquiry.pk, responded_by='admin@example.com')

        self.assertEqual(inquiry.status, Inquiry.Status.ACCEPTED)
        self.assertEqual(inquiry.admin_note, 'Anfrage wurde angenommen')
        self.assertIsNotNone(inquiry.responded_at)
        email = EmailOut.objects.get()
        self.assertEqual(email.event_type, EmailOut.EventType.INQUIRY_ACCEPTED)
        self.assertEqual(email.recipient, 'erika@example.com')
        self.assertEqual(email.reference, inquiry.inquiry_id)

    def test_reject_sends_email(self):
        inquiry = self.submit()

        services.reject_inquiry(inquiry.pk, admin_note='Nicht in dieser Menge lieferbar')

        email = EmailOut.objects.get()
        self.assertEqual(email.event_type, EmailOut.EventType.INQUIRY_REJECTED)
        self.assertIn('Nicht in dieser Menge lieferbar', email.body)

    def test_inquiry_is_answered_once(self):
        inquiry = self.submit()
        services.accept_inquiry(inquiry.pk)

        with self.assertRaises(ValidationError):
            services.reject_inquiry(inquiry.pk)

        inquiry.refresh_from_db()
        self.assertEqual(inquiry.status, Inquiry.Status.ACCEPTED)
        self.assertEqual(EmailOut.objects.count(), 1)

    def test_unknown_inquiry(self):
        with self.assertRaises(NotFoundError):
            services.accept_inquiry(999999)


class InquiryPaymentTestCase(InquiryTestBase):
    """Test cases for converting inquiries into orders."""

    def test_pay_accepted_inquiry(self):
        """
        Test: Paying an accepted inquiry creates a paid order.

        Given: An accepted inquiry for 20 soaps at 4.50
        When: The owner pays it
        Then: An order in status 'bezahlt' exists and the inquiry is converted
        """
        inquiry = self.submit()
        services.accept_inquiry(inquiry.pk)

        order = services.pay_inquiry(inquiry.pk, self.customer, transaction_id='PAY-123')

        inquiry.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PAID)
        self.assertEqual(order.source, Order.Source.INQUIRY)
        self.assertEqual(order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(order.payment_transaction_id, 'PAY-123')
        self.assertEqual(order.subtotal, Decimal('90.00'))
        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.city, 'Berlin')
        self.assertEqual(inquiry.status, Inquiry.Status.CONVERTED)
        self.assertEqual(inquiry.order, order)
        self.assertEqual(order.status_history.get().to_status, 'bezahlt')

    def test_payment_uses_accepted_prices(self):
        """
        Given: An accepted inquiry at 4.50 per soap
        When: The product is repriced and deactivated before payment
        Then: The order is still created at the accepted price
        """
        inquiry = self.submit()
        services.accept_inquiry(inquiry.pk)
        self.product.price = Decimal('6.00')
        self.product.is_active = False
        self.product.save()

        order = services.pay_inquiry(inquiry.pk, self.customer)

        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal('4.50'))
        self.assertEqual(item.product_name, 'Hochzeitsseife')
        self.assertEqual(order.subtotal, inquiry.total)

    def test_pending_inquiry_cannot_be_paid(self):
        inquiry = self.submit()

        with self.assertRaises(ValidationError):
            services.pay_inquiry(inquiry.pk, self.customer)

        self.assertFalse(Order.objects.exists())

    def test_rejected_inquiry_cannot_be_paid(self):
        inquiry = self.submit()
        services.reject_inquiry(inquiry.pk)

        with self.assertRaises(ValidationError):
            services.pay_inquiry(inquiry.pk, self.customer)

    def test_foreign_inquiry_cannot_be_paid(self):
        inquiry = self.submit()
        services.accept_inquiry(inquiry.pk)

        with self.assertRaises(AuthorizationError):
            services.pay_inquiry(inquiry.pk, self.other)

        inquiry.refresh_from_db()
        self.assertEqual(inquiry.status, Inquiry.Status.ACCEPTED)

    def test_inquiry_is_paid_once(self):
        inquiry = self.submit()
        services.accept_inquiry(inquiry.pk)
        services.pay_inquiry(inquiry.pk, self.customer)

        with self.assertRaises(ValidationError):
            services.pay_inquiry(inquiry.pk, self.customer)

        self.assertEqual(Order.objects.count(), 1)


class InquiryAPITestCase(APITestCase):
    """Test cases for the inquiry endpoints."""

    def setUp(self):
        soap = RawSoap.objects.create(name='Ziegenmilch', purchase_price=Decimal('20.00'))
        self.product = Product.objects.create(
            name='Hochzeitsseife', price=Decimal('4.50'), weight_grams=Decimal('80'), raw_soap=soap
        )
        self.admin = make_customer('admin@example.com', role=Customer.Role.ADMIN)
        self.customer = make_customer('erika@example.com', street='Hauptstraße', postal_code='12345',
                                      city='Berlin')

    def test_create_requires_login(self):
        response = self.client.post(
            '/api/inquiries/', {'items': [{'product_id': self.product.id, 'quantity': 5}]}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_full_flow(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(
            '/api/inquiries/', {'items': [{'product_id': self.product.id, 'quantity': 5}]}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        inquiry_pk = response.data['data']['id']

        response = self.client.post(f'/api/inquiries/{inquiry_pk}/accept/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f'/api/inquiries/{inquiry_pk}/accept/', {'adminNote': 'Gerne'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'accepted')
        self.assertEqual(response.data['data']['responded_by'], 'admin@example.com')

        self.client.force_authenticate(user=self.customer)
        response = self.client.post(f'/api/inquiries/{inquiry_pk}/pay/', {'transaction_id': 'PAY-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['status'], 'bezahlt')
        self.assertEqual(response.data['data']['source'], 'anfrage')

        response = self.client.get('/api/inquiries/mine/')
        self.assertEqual(response.data[0]['status'], 'converted_to_order')
        self.assertEqual(response.data[0]['order_number'], Order.objects.get().order_number)

    def test_pay_pending_inquiry_via_api(self):
        inquiry = services.create_inquiry(self.customer, [{'product_id': self.product.id, 'quantity': 1}])
        self.client.force_authenticate(user=self.customer)

        response = self.client.post(f'/api/inquiries/{inquiry.pk}/pay/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'VALIDATION_ERROR')

    def test_detail_hidden_from_other_customers(self):
        inquiry = services.create_inquiry(self.customer, [{'product_id': self.product.id, 'quantity': 1}])
        other = make_customer('max@example.com')
        self.client.force_authenticate(user=other)

        response = self.client.get(f'/api/inquiries/{inquiry.pk}/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        services.create_inquiry(self.customer, [{'product_id': self.product.id, 'quantity': 2}])
        accepted = services.create_inquiry(self.customer, [{'product_id': self.product.id, 'quantity': 1}])
        services.accept_inquiry(accepted.pk)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/inquiries/stats/')

        self.assertEqual(response.data['total_inquiries'], 2)
        self.assertEqual(response.data['pending'], 1)
        self.assertEqual(response.data['accepted'], 1)
        self.assertEqual(response.data['total_value'], '13.50')
