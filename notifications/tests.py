"""
Tests for the e-mail outbox.

Test Cases:
1. send() renders and stores the e-mail, delivery runs after commit
2. Delivery failures are recorded and retried
3. Admin e-mail log endpoints
"""
from datetime import timedelta
from smtplib import SMTPException
from unittest.mock import patch

from django.core import mail
from django.db import transaction
from django.test import TestCase, override_settings
from django.utils import timezone
from kombu.exceptions import OperationalError as BrokerError
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import ValidationError
from customers.models import Customer
from notifications import dispatcher
from notifications.models import EmailOut
from notifications.tasks import deliver_email, retry_failed_emails

ORDER_DATA = {
    'order_number': 'GM251019120042',
    'customer_name': 'Erika Mustermann',
    'items': [{'name': 'Lavendeltraum', 'quantity': 2, 'unit_price': '5.00'}],
    'subtotal': '10.00',
    'shipping_cost': '5.99',
    'tax_rate': '19.00',
    'tax_amount': '3.04',
    'grand_total': '19.03',
    'carrier': 'DHL',
    'tracking_number': '00340434161094000000',
    'was_paid': True,
    'admin_note': '',
}


def queue(event=EmailOut.EventType.ORDER_CONFIRMATION, recipient='erika@example.com'):
    return dispatcher.send(event, recipient, ORDER_DATA, reference=ORDER_DATA['order_number'])


class DispatcherTestCase(TestCase):
    """Test cases for queueing e-mails."""

    def test_email_is_stored_pending(self):
        email = queue()

        email.refresh_from_db()
        self.assertEqual(email.delivery_status, EmailOut.DeliveryStatus.PENDING)
        self.assertEqual(email.subject, 'Ihre Bestellung GM251019120042 wurde bestätigt')
        self.assertIn('Erika Mustermann', email.body)
        self.assertIn('19.03', email.body)
        self.assertEqual(email.context['order_number'], 'GM251019120042')
        self.assertEqual(len(mail.outbox), 0)

    def test_delivery_after_commit(self):
        """
        Test: The e-mail leaves only once the surrounding transaction commits.

        Given: An e-mail queued inside a transaction
        When: The transaction commits
        Then: The message is sent and the row is marked sent
        """
        with self.captureOnCommitCallbacks(execute=True):
            email = queue(EmailOut.EventType.ORDER_SHIPPED)

        email.refresh_from_db()
        self.assertEqual(email.delivery_status, EmailOut.DeliveryStatus.SENT)
        self.assertEqual(email.attempts, 1)
        self.assertIsNotNone(email.sent_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('00340434161094000000', mail.outbox[0].body)

    def test_rolled_back_transaction_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    queue()
                    raise RuntimeError('abort')
            except RuntimeError:
                pass

        self.assertEqual(callbacks, [])
        self.assertFalse(EmailOut.objects.exists())
        self.assertEqual(len(mail.outbox), 0)

    @patch('notifications.tasks.deliver_email.delay', side_effect=BrokerError('redis down'))
    def test_broker_outage_marks_email_failed(self, mock_delay):
        """
        Given: An unreachable message broker
        When: The transaction that queued an e-mail commits
        Then: Nothing is raised, the row is failed with one attempt counted
        """
        with self.captureOnCommitCallbacks(execute=True):
            email = queue()

        mock_delay.assert_called_once_with(email.pk)
        email.refresh_from_db()
        self.assertEqual(email.delivery_status, EmailOut.DeliveryStatus.FAILED)
        self.assertEqual(email.attempts, 1)
        self.assertEqual(email.last_error, 'Queueing failed: redis down')
        self.assertEqual(len(mail.outbox), 0)

    def test_unknown_event(self):
        with self.assertRaises(ValidationError):
            dispatcher.send('newsletter', 'erika@example.com', {})

    def test_missing_recipient_is_skipped(self):
        self.assertIsNone(queue(recipient=''))
        self.assertFalse(EmailOut.objects.exists())

    def test_inquiry_subject(self):
        email = dispatcher.send(
            EmailOut.EventType.INQUIRY_REJECTED, 'erika@example.com',
            {'inquiry_id': 'INQ2510191200123', 'customer_name': 'Erika', 'items': [], 'admin_note': 'Ausverkauft'}
        )

        self.assertEqual(email.subject, 'Ihre Anfrage INQ2510191200123 wurde abgelehnt')
        self.assertIn('Ausverkauft', email.body)


class DeliveryTestCase(TestCase):
    """Test cases for the delivery tasks."""

    def setUp(self):
        self.email = queue()

    @patch('notifications.tasks.send_mail', side_effect=SMTPException('Mailserver down'))
    def test_failure_is_recorded(self, mock_send):
        result = deliver_email(self.email.pk)

        self.email.refresh_from_db()
        self.assertEqual(result['status'], 'failed')
        self.assertEqual(self.email.delivery_status, EmailOut.DeliveryStatus.FAILED)
        self.assertEqual(self.email.attempts, 1)
        self.assertEqual(self.email.last_error, 'Mailserver down')
        self.assertIsNotNone(self.email.failed_at)

    def test_sent_email_is_not_sent_twice(self):
        deliver_email(self.email.pk)
        result = deliver_email(self.email.pk)

        self.assertEqual(result['status'], 'skipped')
        self.assertEqual(len(mail.outbox), 1)

    def test_unknown_email(self):
        self.assertEqual(deliver_email(999999)['status'], 'error')

    @override_settings(EMAIL_MAX_ATTEMPTS=3)
    def test_retry_failed_emails(self):
        """
        Given: One failed e-mail with attempts left and one that used them all
        When: The retry task runs
        Then: Only the first is re-sent
        """
        EmailOut.objects.filter(pk=self.email.pk).update(
            delivery_status=EmailOut.DeliveryStatus.FAILED, attempts=1
        )
        exhausted = queue()
        EmailOut.objects.filter(pk=exhausted.pk).update(
            delivery_status=EmailOut.DeliveryStatus.FAILED, attempts=3
        )

        result = retry_failed_emails()

        self.assertEqual(result, {'requeued': 1})
        self.email.refresh_from_db()
        exhausted.refresh_from_db()
        self.assertEqual(self.email.delivery_status, EmailOut.DeliveryStatus.SENT)
        self.assertEqual(self.email.attempts, 2)
        self.assertEqual(exhausted.delivery_status, EmailOut.DeliveryStatus.FAILED)

    @override_settings(EMAIL_MAX_ATTEMPTS=3, EMAIL_PENDING_STALE_MINUTES=10)
    def test_retry_picks_up_stale_pending_emails(self):
        """
        Given: A pending e-mail older than the stale window and a fresh one
        When: The retry task runs
        Then: Only the stale one is delivered
        """
        EmailOut.objects.filter(pk=self.email.pk).update(
            created_at=timezone.now() - timedelta(minutes=30)
        )
        fresh = queue()

        result = retry_failed_emails()

        self.assertEqual(result, {'requeued': 1})
        self.email.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(self.email.delivery_status, EmailOut.DeliveryStatus.SENT)
        self.assertEqual(fresh.delivery_status, EmailOut.DeliveryStatus.PENDING)

    @override_settings(EMAIL_MAX_ATTEMPTS=3)
    def test_retry_survives_broker_outage(self):
        EmailOut.objects.filter(pk=self.email.pk).update(
            delivery_status=EmailOut.DeliveryStatus.FAILED, attempts=1
        )

        with patch('notifications.tasks.deliver_email.delay', side_effect=BrokerError('redis down')):
            result = retry_failed_emails()

        self.assertEqual(result, {'requeued': 0})
        self.email.refresh_from_db()
        self.assertEqual(self.email.delivery_status, EmailOut.DeliveryStatus.FAILED)
        self.assertEqual(self.email.attempts, 2)


class EmailLogAPITestCase(APITestCase):
    """Test cases for the e-mail log endpoints."""

    def setUp(self):
        self.admin = Customer(first_name='Ada', last_name='Admin', email='admin@example.com',
                              role=Customer.Role.ADMIN)
        self.admin.set_password('geheim123')
        self.admin.save()
        self.sent = queue()
        deliver_email(self.sent.pk)
        self.failed = queue(EmailOut.EventType.ORDER_CANCELLATION)
        EmailOut.objects.filter(pk=self.failed.pk).update(
            delivery_status=EmailOut.DeliveryStatus.FAILED, attempts=1, last_error='timeout'
        )
        self.client.force_authenticate(user=self.admin)

    def test_log_requires_admin(self):
        customer = Customer(first_name='Erika', last_name='Mustermann', email='erika@example.com')
        customer.set_password('geheim123')
        customer.save()
        self.client.force_authenticate(user=customer)

        response = self.client.get('/api/emails/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_status(self):
        response = self.client.get('/api/emails/', {'status': 'failed'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [self.failed.pk])

    def test_stats(self):
        response = self.client.get('/api/emails/stats/')

        self.assertEqual(response.data['gesamt'], 2)
        self.assertEqual(response.data['nachStatus'], {'sent': 1, 'failed': 1})
        self.assertEqual(response.data['fehlerquote'], 50.0)
        self.assertEqual(response.data['endgueltigFehlgeschlagen'], 0)

    def test_retry_failed_email(self):
        response = self.client.post(f'/api/emails/{self.failed.pk}/retry/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['delivery_status'], 'sent')
        self.assertEqual(response.data['data']['attempts'], 2)

    def test_retry_sent_email_refused(self):
        response = self.client.post(f'/api/emails/{self.sent.pk}/retry/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'VALIDATION_ERROR')
