"""
Inquiry Models - pre-order requests (Anfragen).

Inquiry Status Flow:
    pending -> accepted -> converted_to_order (customer paid)
    pending -> rejected
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from core.numbering import generate_unique_number
from customers.models import Customer
from inventory.models import Product
from orders.models import Order


class Inquiry(models.Model):
    """
    A customer's request for products that must be approved before payment.

    Accepted inquiries are payable; payment turns them into an Order.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Offen'
        ACCEPTED = 'accepted', 'Angenommen'
        REJECTED = 'rejected', 'Abgelehnt'
        CONVERTED = 'converted_to_order', 'In Bestellung umgewandelt'

    inquiry_id = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        help_text="INQ + yymmddHHMM + three random digits"
    )
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='inquiries')
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Billing address, copied from the profile unless given
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    street = models.CharField(max_length=200, blank=True, default='')
    house_number = models.CharField(max_length=20, blank=True, default='')
    address_extra = models.CharField(max_length=200, blank=True, default='')
    postal_code = models.CharField(max_length=10, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    country = models.CharField(max_length=100, default='Deutschland')
    shipping_address = models.JSONField(default=dict, blank=True)

    customer_note = models.TextField(blank=True, default='')
    admin_note = models.TextField(blank=True, default='')
    responded_by = models.CharField(max_length=200, blank=True, default='')
    responded_at = models.DateTimeField(null=True, blank=True)

    order = models.OneToOneField(
        Order,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='inquiry'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Inquiry'
        verbose_name_plural = 'Inquiries'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status']),
        ]

    def __str__(self):
        return f"Inquiry {self.inquiry_id} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.inquiry_id:
            self.inquiry_id = generate_unique_number(
                Inquiry, 'inquiry_id', prefix='INQ', random_digits=3
            )
        super().save(*args, **kwargs)

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    @property
    def is_payable(self) -> bool:
        return self.status == self.Status.ACCEPTED


class InquiryItem(models.Model):
    """Requested product with name and price snapshot."""
    inquiry = models.ForeignKey(Inquiry, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='inquiry_items')
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price
