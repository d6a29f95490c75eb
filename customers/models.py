"""
Customer Models - shop accounts for buyers and administrators.

A customer carries exactly one canonical ``role``. Accounts are never
deleted; they are disabled (``is_active=False``) for retention reasons.
"""
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone

from core.numbering import generate_unique_number


class Customer(models.Model):
    """
    Shop account used for checkout, inquiries and the admin area.
    """

    class Role(models.TextChoices):
        CUSTOMER = 'kunde', 'Kunde'
        ADMIN = 'admin', 'Admin'

    customer_number = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        help_text="Human-readable customer number"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(unique=True, db_index=True)
    phone = models.CharField(max_length=40, blank=True, default='')
    password = models.CharField(max_length=128, help_text="Password hash")

    # Billing address
    street = models.CharField(max_length=200, blank=True, default='')
    house_number = models.CharField(max_length=20, blank=True, default='')
    address_extra = models.CharField(max_length=200, blank=True, default='')
    postal_code = models.CharField(max_length=10, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    country = models.CharField(max_length=100, default='Deutschland')

    role = models.CharField(
        max_length=10,
        choices=Role.choices,
        default=Role.CUSTOMER,
        db_index=True
    )

    # Communication preferences
    newsletter_opt_in = models.BooleanField(default=False)
    order_updates_opt_in = models.BooleanField(
        default=True,
        help_text="Receive status e-mails for orders and inquiries"
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Disabled accounts cannot log in"
    )
    last_login_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Customer'
        verbose_name_plural = 'Customers'
        ordering = ['last_name', 'first_name']

    def __str__(self):
        return f"{self.full_name} ({self.customer_number})"

    def save(self, *args, **kwargs):
        if not self.customer_number:
            self.customer_number = generate_unique_number(
                Customer, 'customer_number', prefix='KD', random_digits=3
            )
        self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    # DRF permission classes check ``request.user.is_authenticated``.
    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def set_password(self, raw_password: str) -> None:
        self.password = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password(raw_password, self.password)

    def record_login(self) -> None:
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    def disable(self) -> None:
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])
