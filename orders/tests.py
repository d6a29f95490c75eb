"""
Tests for checkout and the order status state machine.

Test Cases:
1. Checkout computes totals and numbers the order
2. Confirmation reserves stock, cancellation restores it exactly
3. Confirmation with short stock changes nothing
4. Illegal transitions and shipping without tracking number are refused
5. Status e-mails are queued and delivered after commit
6. Concurrent confirmations never oversell
7. Order endpoints and permissions
8. Carts merge lines and check out into new orders
9. Invoices are numbered once per paid order and rendered from a template
"""
import re
import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from kombu.exceptions import OperationalError as BrokerError
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import (
    IllegalTransitionError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from customers.models import Customer
from inventory.models import Packaging, Product, RawSoap
from notifications.models import EmailOut
from orders.models import CartItem, InvoiceTemplate, Order, OrderStatusChange, StockReservation
from orders.services import (
    add_to_cart,
    allowed_targets,
    cart_summary,
    checkout_cart,
    clear_cart,
    create_order,
    get_order_summary,
    remove_from_cart,
    render_invoice,
    transition_order_status,
    update_cart_item,
)
from orders.tasks import generate_daily_order_report

BUYER = {
    'email': 'Erika@Example.com',
    'first_name': 'Erika',
    'last_name': 'Mustermann',
    'street': 'Hauptstraße',
    'house_number': '1',
    'postal_code': '12345',
    'city': 'Berlin',
}


def make_catalog(soap_grams='1000', boxes='10'):
    soap = RawSoap.objects.create(
        name='Glycerinseife', purchase_price=Decimal('10.00'), quantity=Decimal(soap_grams)
    )
    box = Packaging.objects.create(
        name='Schachtel', purchase_price=Decimal('5.00'), package_quantity=10,
        quantity=Decimal(boxes)
    )
    product = Product.objects.create(
        name='Lavendeltraum', price=Decimal('5.00'), weight_grams=Decimal('100'),
        raw_soap=soap, packaging=box
    )
    return soap, box, product


def advance(order, *targets, **kwargs):
    for target in targets:
        order = transition_order_status(order.pk, target, **kwargs)
    return order


class CheckoutTestCase(TestCase):
    """Test cases for order creation."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()

    def test_small_order_pays_shipping(self):
        """
        Test: Orders below the free-shipping threshold pay shipping.

        Given: Two soaps at 5.00
        When: Checking out
        Then: 10.00 + 5.99 shipping + 19% tax on both = 19.03
        """
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 2}])

        self.assertEqual(order.subtotal, Decimal('10.00'))
        self.assertEqual(order.shipping_cost, Decimal('5.99'))
        self.assertEqual(order.tax_amount, Decimal('3.04'))
        self.assertEqual(order.grand_total, Decimal('19.03'))

    def test_large_order_ships_free(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 7}])

        self.assertEqual(order.subtotal, Decimal('35.00'))
        self.assertEqual(order.shipping_cost, Decimal('0.00'))
        self.assertEqual(order.tax_amount, Decimal('6.65'))
        self.assertEqual(order.grand_total, Decimal('41.65'))

    def test_new_order_state(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])

        self.assertRegex(order.order_number, r'^GM\d{12}$')
        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(order.email, 'erika@example.com')
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(order.items.get().product_name, 'Lavendeltraum')
        self.assertEqual(order.status_history.count(), 1)

    def test_checkout_does_not_touch_stock(self):
        create_order(BUYER, [{'product_id': self.product.id, 'quantity': 3}])

        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('1000'))

    def test_inactive_product_rejected(self):
        self.product.is_active = False
        self.product.save()

        with self.assertRaises(ValidationError):
            create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])

        self.assertEqual(Order.objects.count(), 0)

    def test_invalid_items_rejected(self):
        for items in (
            [],
            [{'product_id': self.product.id}],
            [{'product_id': self.product.id, 'quantity': 0}],
            [{'product_id': self.product.id, 'quantity': 1}, {'product_id': self.product.id, 'quantity': 2}],
        ):
            with self.assertRaises(ValidationError):
                create_order(BUYER, items)


class StatusTransitionTestCase(TestCase):
    """Test cases for the order status state machine."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 3}])

    def test_allowed_targets(self):
        self.assertEqual(allowed_targets(Order.Status.NEW), ('bezahlt', 'storniert', 'abgelehnt'))
        self.assertEqual(allowed_targets('abgeschlossen'), ())

    def test_payment_stamps_order(self):
        order = advance(self.order, Order.Status.PAID)

        self.assertEqual(order.payment_status, Order.PaymentStatus.PAID)
        self.assertIsNotNone(order.paid_at)

    def test_confirmation_reserves_stock(self):
        """
        Test: Confirming takes the order's materials out of stock.

        Given: 1000 g soap and 10 boxes, an order for 3 soaps of 100 g
        When: The order is paid and confirmed
        Then: 700 g soap and 7 boxes remain, two reservations exist
        """
        advance(self.order, Order.Status.PAID, Order.Status.CONFIRMED)

        self.soap.refresh_from_db()
        self.box.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('700'))
        self.assertEqual(self.box.quantity, Decimal('7'))
        self.assertEqual(StockReservation.objects.filter(order=self.order).count(), 2)

    def test_cancel_after_confirmation_restores_stock(self):
        """
        Test: Cancelling a confirmed order restocks exactly what was reserved.

        Given: A confirmed order holding 300 g soap and 3 boxes
        When: The order is cancelled
        Then: Stock is back at 1000 g and 10 boxes, refund is pending
        """
        advance(self.order, Order.Status.PAID, Order.Status.CONFIRMED)

        order = transition_order_status(self.order.pk, Order.Status.CANCELLED, admin_note='Kundenwunsch')

        self.soap.refresh_from_db()
        self.box.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('1000'))
        self.assertEqual(self.box.quantity, Decimal('10'))
        self.assertFalse(StockReservation.objects.filter(order=self.order).exists())
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(order.payment_status, Order.PaymentStatus.REFUND_PENDING)

    def test_cancel_unconfirmed_order_leaves_stock(self):
        transition_order_status(self.order.pk, Order.Status.CANCELLED)

        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('1000'))
        self.assertEqual(self.soap.movements.count(), 0)

    def test_confirmation_with_short_stock_changes_nothing(self):
        """
        Test: Confirmation is all-or-nothing.

        Given: Enough soap but only 2 boxes for an order of 3
        When: Confirming the order
        Then: InsufficientStockError, soap untouched, status still 'bezahlt', no e-mail
        """
        self.box.quantity = Decimal('2')
        self.box.save()
        advance(self.order, Order.Status.PAID)

        with self.assertRaises(InsufficientStockError):
            transition_order_status(self.order.pk, Order.Status.CONFIRMED)

        self.soap.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('1000'))
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertFalse(StockReservation.objects.exists())
        self.assertFalse(EmailOut.objects.exists())

    def test_illegal_transition(self):
        with self.assertRaises(IllegalTransitionError) as context:
            transition_order_status(self.order.pk, Order.Status.SHIPPED)

        self.assertEqual(context.exception.current, 'neu')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.NEW)
        self.assertEqual(self.order.status_history.count(), 1)

    def test_unpaid_order_cannot_be_confirmed(self):
        """
        Given: A new, unpaid order
        When: An admin confirms it directly
        Then: The change is refused and no stock is reserved
        """
        with self.assertRaises(IllegalTransitionError) as context:
            transition_order_status(self.order.pk, Order.Status.CONFIRMED)

        self.assertEqual(context.exception.current, 'neu')
        self.assertEqual(context.exception.target, 'bestaetigt')
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('1000'))
        self.assertFalse(StockReservation.objects.exists())
        self.assertFalse(EmailOut.objects.exists())

    def test_terminal_status_is_final(self):
        transition_order_status(self.order.pk, Order.Status.REJECTED)

        with self.assertRaises(IllegalTransitionError):
            transition_order_status(self.order.pk, Order.Status.PAID)

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            transition_order_status(self.order.pk, 'verloren')

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            transition_order_status(999999, Order.Status.PAID)

    def test_shipping_requires_tracking_number(self):
        """
        Given: A packed order
        When: Shipping it without tracking number
        Then: ValidationError, status stays 'verpackt'
        """
        advance(self.order, Order.Status.PAID, Order.Status.CONFIRMED, Order.Status.PACKED)

        with self.assertRaises(ValidationError) as context:
            transition_order_status(self.order.pk, Order.Status.SHIPPED, shipment={'anbieter': 'DHL'})

        self.assertEqual(context.exception.details['field'], 'versand.sendungsnummer')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PACKED)

    def test_full_lifecycle_history(self):
        order = advance(self.order, Order.Status.PAID, Order.Status.CONFIRMED, Order.Status.PACKED)
        order = transition_order_status(
            order.pk, Order.Status.SHIPPED,
            shipment={'anbieter': 'DHL', 'sendungsnummer': '00340434161094000000'},
            changed_by='admin@example.com'
        )
        order = advance(order, Order.Status.DELIVERED, Order.Status.COMPLETED)

        self.assertEqual(order.carrier, 'DHL')
        self.assertEqual(order.tracking_number, '00340434161094000000')
        self.assertIsNotNone(order.shipped_at)
        self.assertIsNotNone(order.delivered_at)

        history = list(OrderStatusChange.objects.filter(order=order).values_list('from_status', 'to_status'))
        self.assertEqual(history, [
            ('', 'neu'),
            ('neu', 'bezahlt'),
            ('bezahlt', 'bestaetigt'),
            ('bestaetigt', 'verpackt'),
            ('verpackt', 'verschickt'),
            ('verschickt', 'zugestellt'),
            ('zugestellt', 'abgeschlossen'),
        ])

    def test_order_summary(self):
        summary = get_order_summary(self.order.pk)

        self.assertEqual(summary['status'], 'neu')
        self.assertEqual(summary['allowed_transitions'], ['bezahlt', 'storniert', 'abgelehnt'])
        self.assertEqual(summary['items'][0]['subtotal'], '15.00')


class StatusNotificationTestCase(TestCase):
    """Test cases for e-mails queued by status changes."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])
        advance(self.order, Order.Status.PAID)

    def test_confirmation_email_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            transition_order_status(self.order.pk, Order.Status.CONFIRMED)

        self.assertEqual(len(callbacks), 1)
        email = EmailOut.objects.get()
        self.assertEqual(email.event_type, EmailOut.EventType.ORDER_CONFIRMATION)
        self.assertEqual(email.delivery_status, EmailOut.DeliveryStatus.SENT)
        self.assertEqual(email.reference, self.order.order_number)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['erika@example.com'])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)

    def test_broker_outage_keeps_confirmation(self):
        """
        Given: A paid order and an unreachable message broker
        When: The order is confirmed
        Then: The confirmation stands and the e-mail is marked failed for the retry job
        """
        with patch('notifications.tasks.deliver_email.delay', side_effect=BrokerError('redis down')):
            with self.captureOnCommitCallbacks(execute=True):
                order = transition_order_status(self.order.pk, Order.Status.CONFIRMED)

        self.assertEqual(order.status, Order.Status.CONFIRMED)
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('900.00'))
        email = EmailOut.objects.get()
        self.assertEqual(email.delivery_status, EmailOut.DeliveryStatus.FAILED)
        self.assertEqual(email.attempts, 1)
        self.assertIn('redis down', email.last_error)
        self.assertEqual(len(mail.outbox), 0)

    def test_payment_sends_no_email(self):
        self.assertFalse(EmailOut.objects.exists())

    def test_rejection_and_shipping_events(self):
        transition_order_status(self.order.pk, Order.Status.REJECTED, admin_note='Nicht lieferbar')

        email = EmailOut.objects.get()
        self.assertEqual(email.event_type, EmailOut.EventType.ORDER_REJECTION)
        self.assertIn('Nicht lieferbar', email.body)


class DailyReportTestCase(TestCase):

    def test_report_counts_yesterday(self):
        soap, box, product = make_catalog()
        order = create_order(BUYER, [{'product_id': product.id, 'quantity': 2}])
        transition_order_status(order.pk, Order.Status.PAID)
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(days=1))
        create_order(BUYER, [{'product_id': product.id, 'quantity': 1}])

        stats = generate_daily_order_report()

        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['from_inquiries'], 0)
        self.assertEqual(stats['total_revenue'], '19.03')
        self.assertEqual(stats['date'], (timezone.localdate() - timedelta(days=1)).isoformat())
        self.assertEqual(stats['critical_stock'], [])

    def test_report_lists_critical_stock(self):
        soap, box, product = make_catalog()
        box.minimum_threshold = Decimal('10')
        box.save()

        stats = generate_daily_order_report()

        self.assertEqual(stats['total_orders'], 0)
        self.assertEqual(stats['total_revenue'], '0.00')
        self.assertEqual(stats['critical_stock'], ['Schachtel'])


class ConcurrentConfirmationTestCase(TransactionTestCase):
    """
    Test concurrent confirmations against the conditional stock update.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        # Soap for both orders, boxes for only one
        self.soap, self.box, self.product = make_catalog(soap_grams='2000', boxes='10')
        self.orders = []
        for _ in range(2):
            order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 8}])
            self.orders.append(transition_order_status(order.pk, Order.Status.PAID))

    def test_concurrent_confirmations_no_overselling(self):
        """
        Test: Concurrent confirmations don't oversell packaging.

        Given: 10 boxes in stock
        When: Two orders of 8 units are confirmed at the same time
        Then: At most one succeeds and stock never goes below zero
        """
        results = {}

        def confirm(order):
            try:
                transition_order_status(order.pk, Order.Status.CONFIRMED)
                results[order.pk] = 'confirmed'
            except (InsufficientStockError, OperationalError):
                results[order.pk] = 'refused'
            finally:
                connection.close()

        threads = [threading.Thread(target=confirm, args=(order,)) for order in self.orders]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        confirmed = sum(1 for result in results.values() if result == 'confirmed')
        self.box.refresh_from_db()

        self.assertLessEqual(confirmed, 1)
        self.assertEqual(self.box.quantity, Decimal('10') - 8 * confirmed)
        self.assertEqual(
            Order.objects.filter(status=Order.Status.CONFIRMED).count(), confirmed
        )


class OrderAPITestCase(APITestCase):
    """Test cases for the order endpoints."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.admin = Customer(first_name='Ada', last_name='Admin', email='admin@example.com',
                              role=Customer.Role.ADMIN)
        self.admin.set_password('geheim123')
        self.admin.save()
        self.customer = Customer(first_name='Erika', last_name='Mustermann', email='erika@example.com')
        self.customer.set_password('geheim123')
        self.customer.save()

    def checkout(self, quantity=2):
        payload = dict(BUYER, items=[{'product_id': self.product.id, 'quantity': quantity}])
        return self.client.post('/api/orders/', payload, format='json')

    def test_anonymous_checkout(self):
        response = self.checkout()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertTrue(re.match(r'^GM\d{12}$', data['order_number']))
        self.assertEqual(data['status'], 'neu')
        self.assertEqual(data['grand_total'], '19.03')
        self.assertIsNone(data['customer'])

    def test_logged_in_checkout_links_customer(self):
        self.client.force_authenticate(user=self.customer)

        response = self.checkout()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Order.objects.get().customer, self.customer)

    def test_checkout_validation_error_envelope(self):
        response = self.client.post('/api/orders/', {'email': 'kein-mail'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['type'], 'VALIDATION_ERROR')

    def test_status_update_requires_admin(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}], customer=self.customer)
        self.client.force_authenticate(user=self.customer)

        response = self.client.put(f'/api/orders/{order.pk}/status/', {'status': 'bezahlt'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.NEW)

    def test_admin_ships_order(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])
        advance(order, Order.Status.PAID, Order.Status.CONFIRMED, Order.Status.PACKED)
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(
            f'/api/orders/{order.pk}/status/',
            {'status': 'verschickt', 'versand': {'anbieter': 'DHL', 'sendungsnummer': '12345'}},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'verschickt')
        self.assertEqual(response.data['data']['tracking_number'], '12345')
        self.assertEqual(response.data['data']['status_history'][-1]['changed_by'], 'admin@example.com')

    def test_admin_illegal_transition(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(f'/api/orders/{order.pk}/status/', {'status': 'zugestellt'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'ILLEGAL_TRANSITION')

    def test_admin_confirm_with_short_stock(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 11}])
        advance(order, Order.Status.PAID)
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(f'/api/orders/{order.pk}/status/', {'status': 'bestaetigt'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'INSUFFICIENT_STOCK')

    def test_customer_sees_only_own_orders(self):
        own = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}], customer=self.customer)
        foreign = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])
        self.client.force_authenticate(user=self.customer)

        self.assertEqual(self.client.get(f'/api/orders/{own.pk}/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(f'/api/orders/{foreign.pk}/').status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get('/api/orders/mine/')
        self.assertEqual([order['id'] for order in response.data], [own.pk])

    def test_order_list_is_admin_only(self):
        self.client.force_authenticate(user=self.customer)

        self.assertEqual(self.client.get('/api/orders/').status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 2}])
        advance(order, Order.Status.PAID)
        create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}])
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/orders/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 2)
        self.assertEqual(response.data['total_revenue'], '19.03')
        self.assertEqual(response.data['open_orders'], 2)
        self.assertEqual(response.data['by_status']['bezahlt'], 1)


def make_shopper(email='erika@example.com', **extra):
    address = {'street': 'Hauptstraße', 'house_number': '1', 'postal_code': '12345', 'city': 'Berlin'}
    address.update(extra)
    customer = Customer(first_name='Erika', last_name='Mustermann', email=email, **address)
    customer.set_password('geheim123')
    customer.save()
    return customer


class CartTestCase(TestCase):
    """Test cases for the cart service."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.customer = make_shopper()

    def test_adding_same_product_merges_lines(self):
        add_to_cart(self.customer, self.product.id, 2)
        cart = add_to_cart(self.customer, self.product.id, 3)

        summary = cart_summary(cart)
        self.assertEqual(len(summary['items']), 1)
        self.assertEqual(summary['items'][0]['quantity'], 5)
        self.assertEqual(summary['total'], '25.00')
        self.assertEqual(summary['itemCount'], 5)

    def test_cart_is_priced_from_catalog(self):
        cart = add_to_cart(self.customer, self.product.id, 2)
        self.product.price = Decimal('6.00')
        self.product.save()

        self.assertEqual(cart_summary(cart)['total'], '12.00')

    def test_add_inactive_product(self):
        self.product.is_active = False
        self.product.save()

        with self.assertRaises(NotFoundError):
            add_to_cart(self.customer, self.product.id, 1)

    def test_add_requires_positive_quantity(self):
        for quantity in (0, -1, 1.5, True):
            with self.assertRaises(ValidationError):
                add_to_cart(self.customer, self.product.id, quantity)

    def test_update_and_remove_lines(self):
        add_to_cart(self.customer, self.product.id, 2)

        cart = update_cart_item(self.customer, self.product.id, 4)
        self.assertEqual(cart_summary(cart)['itemCount'], 4)

        cart = update_cart_item(self.customer, self.product.id, 0)
        self.assertEqual(cart_summary(cart)['items'], [])

        with self.assertRaises(NotFoundError):
            update_cart_item(self.customer, self.product.id, 1)

    def test_remove_and_clear(self):
        second = Product.objects.create(
            name='Rosenblüte', price=Decimal('6.50'), weight_grams=Decimal('90'),
            raw_soap=self.soap, packaging=self.box
        )
        add_to_cart(self.customer, self.product.id, 1)
        add_to_cart(self.customer, second.id, 1)

        cart = remove_from_cart(self.customer, self.product.id)
        self.assertEqual([item['name'] for item in cart_summary(cart)['items']], ['Rosenblüte'])

        cart = clear_cart(self.customer)
        self.assertEqual(cart_summary(cart)['itemCount'], 0)

    def test_checkout_creates_order_and_empties_cart(self):
        """
        Given: Two soaps at 5.00 in the cart
        When: The customer checks out
        Then: A new order for the profile address exists and the cart is empty
        """
        add_to_cart(self.customer, self.product.id, 2)

        order = checkout_cart(self.customer, {'customer_note': 'Bitte als Geschenk verpacken'})

        self.assertEqual(order.status, Order.Status.NEW)
        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.grand_total, Decimal('19.03'))
        self.assertEqual(order.city, 'Berlin')
        self.assertEqual(order.customer_note, 'Bitte als Geschenk verpacken')
        self.assertEqual(order.items.get().quantity, 2)
        self.assertFalse(CartItem.objects.exists())

    def test_checkout_empty_cart(self):
        with self.assertRaises(ValidationError):
            checkout_cart(self.customer)

        self.assertFalse(Order.objects.exists())

    def test_checkout_needs_billing_address(self):
        customer = make_shopper('max@example.com', street='', city='')
        add_to_cart(customer, self.product.id, 1)

        with self.assertRaises(ValidationError) as context:
            checkout_cart(customer)

        self.assertEqual(context.exception.details['field'], 'street')
        self.assertEqual(CartItem.objects.count(), 1)

    def test_checkout_keeps_cart_when_product_unavailable(self):
        add_to_cart(self.customer, self.product.id, 1)
        self.product.is_active = False
        self.product.save()

        with self.assertRaises(ValidationError):
            checkout_cart(self.customer)

        self.assertEqual(CartItem.objects.count(), 1)
        self.assertFalse(Order.objects.exists())


class CartAPITestCase(APITestCase):
    """Test cases for the cart endpoints."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.customer = make_shopper()
        self.admin = Customer(first_name='Ada', last_name='Admin', email='admin@example.com',
                              role=Customer.Role.ADMIN)
        self.admin.set_password('geheim123')
        self.admin.save()

    def test_cart_requires_login(self):
        response = self.client.get('/api/cart/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_admin_has_no_cart(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'], {'items': [], 'total': '0.00', 'itemCount': 0})

        response = self.client.post('/api/cart/add/', {'product_id': self.product.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['type'], 'AUTHORIZATION_ERROR')

    def test_cart_flow(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.post(
            '/api/cart/add/', {'product_id': self.product.id, 'quantity': 2}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['itemCount'], 2)

        response = self.client.put(
            '/api/cart/update/', {'product_id': self.product.id, 'quantity': 3}, format='json'
        )
        self.assertEqual(response.data['data']['total'], '15.00')

        response = self.client.get('/api/cart/')
        self.assertEqual(response.data['data']['items'][0]['name'], 'Lavendeltraum')

        response = self.client.delete(f'/api/cart/remove/{self.product.id}/')
        self.assertEqual(response.data['data']['itemCount'], 0)

    def test_add_unknown_product(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.post('/api/cart/add/', {'product_id': 999999}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_clear(self):
        self.client.force_authenticate(user=self.customer)
        add_to_cart(self.customer, self.product.id, 2)

        response = self.client.delete('/api/cart/clear/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(CartItem.objects.exists())

    def test_checkout(self):
        self.client.force_authenticate(user=self.customer)
        add_to_cart(self.customer, self.product.id, 2)

        response = self.client.post('/api/cart/checkout/', {'payment_method': 'ueberweisung'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['grand_total'], '19.03')
        self.assertEqual(data['payment_method'], 'ueberweisung')
        self.assertEqual(data['customer'], self.customer.pk)

    def test_checkout_empty_cart(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.post('/api/cart/checkout/', {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['message'], 'The cart is empty')


class InvoiceTestCase(TestCase):
    """Test cases for invoice numbering and rendering."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 2}])

    def test_unpaid_order_has_no_invoice(self):
        with self.assertRaises(ValidationError):
            render_invoice(self.order.pk)

        self.order.refresh_from_db()
        self.assertIsNone(self.order.invoice_number)

    def test_invoice_number_is_assigned_once(self):
        """
        Given: Two paid orders
        When: Their invoices are rendered, the first one twice
        Then: Numbers count up per month and never change
        """
        advance(self.order, Order.Status.PAID)
        second = advance(create_order(BUYER, [{'product_id': self.product.id, 'quantity': 1}]),
                         Order.Status.PAID)

        first_invoice = render_invoice(self.order.pk)
        second_invoice = render_invoice(second.pk)
        again = render_invoice(self.order.pk)

        prefix = f"RE-{timezone.now():%Y%m}-"
        self.assertEqual(first_invoice['invoice_number'], f'{prefix}0001')
        self.assertEqual(second_invoice['invoice_number'], f'{prefix}0002')
        self.assertEqual(again['invoice_number'], first_invoice['invoice_number'])

    def test_invoice_uses_default_template(self):
        advance(self.order, Order.Status.PAID)
        InvoiceTemplate.objects.create(name='Alt', company_name='Alte Firma', is_default=True)
        InvoiceTemplate.objects.create(
            name='Neu', company_name='Glücksmomente Manufaktur', iban='DE02120300000000202051',
            payment_terms_days=7, is_default=True
        )

        invoice = render_invoice(self.order.pk)

        self.assertEqual(InvoiceTemplate.objects.filter(is_default=True).count(), 1)
        self.assertEqual(invoice['template'], 'Neu')
        self.assertEqual(invoice['due_date'] - invoice['invoice_date'], timedelta(days=7))
        self.assertIn('DE02120300000000202051', invoice['html'])
        self.assertIn(self.order.order_number, invoice['html'])
        self.assertRegex(invoice['html'], r'19[.,]03 EUR')
        self.assertIn('Lavendeltraum', invoice['html'])

    def test_small_business_note(self):
        advance(self.order, Order.Status.PAID)
        template = InvoiceTemplate.objects.create(
            name='Klein', company_name='Glücksmomente Manufaktur', is_small_business=True
        )

        invoice = render_invoice(self.order.pk, template.pk)

        self.assertIn('§19 UStG', invoice['html'])

    def test_fallback_template_without_configuration(self):
        advance(self.order, Order.Status.PAID)

        invoice = render_invoice(self.order.pk)

        self.assertEqual(invoice['template'], 'Standard')


class InvoiceAPITestCase(APITestCase):
    """Test cases for the invoice endpoints."""

    def setUp(self):
        self.soap, self.box, self.product = make_catalog()
        self.customer = make_shopper()
        self.other = make_shopper('max@example.com')
        self.admin = Customer(first_name='Ada', last_name='Admin', email='admin@example.com',
                              role=Customer.Role.ADMIN)
        self.admin.set_password('geheim123')
        self.admin.save()
        order = create_order(BUYER, [{'product_id': self.product.id, 'quantity': 2}], customer=self.customer)
        self.order = advance(order, Order.Status.PAID)

    def test_customer_gets_own_invoice(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.get(f'/api/orders/{self.order.pk}/invoice/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['invoice_number'].startswith('RE-'))
        self.assertIn(self.order.order_number, response.data['html'])

    def test_foreign_invoice_is_forbidden(self):
        self.client.force_authenticate(user=self.other)

        response = self.client.get(f'/api/orders/{self.order.pk}/invoice/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_order(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/orders/999999/invoice/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_template_management_is_admin_only(self):
        payload = {'name': 'Standard', 'company_name': 'Glücksmomente Manufaktur', 'is_default': True}

        self.client.force_authenticate(user=self.customer)
        response = self.client.post('/api/invoice-templates/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/invoice-templates/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(InvoiceTemplate.objects.get().is_default)
