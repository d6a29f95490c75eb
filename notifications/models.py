"""
Notification Models - outbound e-mail log and delivery outbox.

Every e-mail the shop sends is written here first. Content fields are
immutable after creation; only the delivery fields change.
"""
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class EmailOut(models.Model):
    """
    One outbound e-mail.

    Delivery Status Flow:
        pending -> sent
        pending -> failed -> sent (retry)
    """

    class EventType(models.TextChoices):
        ORDER_CONFIRMATION = 'order_confirmation', 'Order confirmation'
        ORDER_REJECTION = 'order_rejection', 'Order rejection'
        ORDER_CANCELLATION = 'order_cancellation', 'Order cancellation'
        ORDER_SHIPPED = 'order_shipped', 'Order shipped'
        INQUIRY_ACCEPTED = 'inquiry_accepted', 'Inquiry accepted'
        INQUIRY_REJECTED = 'inquiry_rejected', 'Inquiry rejected'

    class DeliveryStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'

    event_type = models.CharField(max_length=40, choices=EventType.choices, db_index=True)
    recipient = models.EmailField(db_index=True)
    subject = models.CharField(max_length=300)
    body = models.TextField()
    context = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Template data used to render"
    )
    reference = models.CharField(
        max_length=50,
        blank=True,
        default='',
        db_index=True,
        help_text="Order number or inquiry id"
    )

    delivery_status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.PENDING,
        db_index=True
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default='')
    sent_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Outbound E-mail'
        verbose_name_plural = 'Outbound E-mails'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['delivery_status', 'attempts']),
        ]

    def __str__(self):
        return f"{self.event_type} to {self.recipient} ({self.delivery_status})"

    def mark_sent(self) -> None:
        self.delivery_status = self.DeliveryStatus.SENT
        self.attempts += 1
        self.sent_at = timezone.now()
        self.last_error = ''
        self.save(update_fields=['delivery_status', 'attempts', 'sent_at', 'last_error'])

    def mark_failed(self, error: str) -> None:
        self.delivery_status = self.DeliveryStatus.FAILED
        self.attempts += 1
        self.failed_at = timezone.now()
        self.last_error = error[:2000]
        self.save(update_fields=['delivery_status', 'attempts', 'failed_at', 'last_error'])
