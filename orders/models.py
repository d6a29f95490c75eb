"""
Order Models - Order, OrderItem, status history, stock reservations,
carts and invoice templates.

Order Status Flow:
    neu -> bezahlt -> bestaetigt -> verpackt -> verschickt -> zugestellt -> abgeschlossen
    neu | bezahlt | bestaetigt | verpackt -> storniert
    neu | bezahlt -> abgelehnt
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from core.numbering import generate_unique_number
from customers.models import Customer
from inventory.models import Product, StockItem


class Order(models.Model):
    """
    Customer order with computed totals.

    Totals are computed once at creation and never recomputed. Orders are
    never deleted; cancelled and rejected orders stay for bookkeeping.
    """

    class Status(models.TextChoices):
        NEW = 'neu', 'Neu'
        PAID = 'bezahlt', 'Bezahlt'
        CONFIRMED = 'bestaetigt', 'Bestätigt'
        PACKED = 'verpackt', 'Verpackt'
        SHIPPED = 'verschickt', 'Verschickt'
        DELIVERED = 'zugestellt', 'Zugestellt'
        COMPLETED = 'abgeschlossen', 'Abgeschlossen'
        CANCELLED = 'storniert', 'Storniert'
        REJECTED = 'abgelehnt', 'Abgelehnt'

    class PaymentMethod(models.TextChoices):
        PAYPAL = 'paypal', 'PayPal'
        BANK_TRANSFER = 'ueberweisung', 'Überweisung'
        CASH = 'bar', 'Bar'

    class PaymentStatus(models.TextChoices):
        PENDING = 'ausstehend', 'Ausstehend'
        PAID = 'bezahlt', 'Bezahlt'
        REFUND_PENDING = 'erstattung_ausstehend', 'Erstattung ausstehend'

    class Source(models.TextChoices):
        SHOP = 'shop', 'Shop'
        INQUIRY = 'anfrage', 'Anfrage'

    # Orders that count towards revenue
    REVENUE_STATUSES = (
        Status.PAID, Status.CONFIRMED, Status.PACKED,
        Status.SHIPPED, Status.DELIVERED, Status.COMPLETED,
    )

    order_number = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        help_text="GM + yymmddHHMM + two random digits"
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    source = models.CharField(max_length=10, choices=Source.choices, default=Source.SHOP)

    # Buyer
    email = models.EmailField(db_index=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=40, blank=True, default='')

    # Billing address
    street = models.CharField(max_length=200)
    house_number = models.CharField(max_length=20, blank=True, default='')
    address_extra = models.CharField(max_length=200, blank=True, default='')
    postal_code = models.CharField(max_length=10)
    city = models.CharField(max_length=100)
    country = models.CharField(max_length=100, default='Deutschland')
    shipping_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="Deviating shipping address, empty if same as billing"
    )

    # Totals
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('19.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    shipping_cost = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0.00'))
    grand_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
        db_index=True,
        help_text="Current order status"
    )

    # Payment
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.PAYPAL
    )
    payment_status = models.CharField(
        max_length=30,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    payment_transaction_id = models.CharField(max_length=100, blank=True, default='')
    paid_at = models.DateTimeField(null=True, blank=True)

    # Shipment
    carrier = models.CharField(max_length=50, blank=True, default='')
    tracking_number = models.CharField(max_length=100, blank=True, default='')
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    # Invoice, numbered RE-yyyymm-nnnn on first rendering
    invoice_number = models.CharField(max_length=20, unique=True, null=True, blank=True, editable=False)
    invoice_date = models.DateTimeField(null=True, blank=True)

    customer_note = models.TextField(blank=True, default='')
    admin_note = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at']),
            models.Index(fields=['customer', 'created_at']),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_unique_number(Order, 'order_number', prefix='GM')
        super().save(*args, **kwargs)

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PaymentStatus.PAID

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items.all())


class OrderItem(models.Model):
    """
    OrderItem entity representing a product in an order.

    Name and unit price are snapshots at time of order.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='order_items',
        help_text="Ordered product"
    )
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity ordered"
    )
    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per unit at time of order"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product_name} @ {self.unit_price} EUR"

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


class OrderStatusChange(models.Model):
    """Append-only history entry for one status transition."""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=20, blank=True, default='')
    to_status = models.CharField(max_length=20, choices=Order.Status.choices)
    admin_note = models.TextField(blank=True, default='')
    changed_by = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Order Status Change'
        verbose_name_plural = 'Order Status Changes'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.order.order_number}: {self.from_status or '-'} -> {self.to_status}"


class StockReservation(models.Model):
    """
    Stock taken out for a confirmed order.

    Rows are removed again when the reservation is released on cancel or
    reject, so the restocked amount always equals the reserved amount.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='reservations')
    stock_item = models.ForeignKey(
        StockItem,
        on_delete=models.PROTECT,
        related_name='reservations'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Stock Reservation'
        verbose_name_plural = 'Stock Reservations'
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'stock_item'],
                name='unique_reservation_per_order_item'
            )
        ]

    def __str__(self):
        return f"{self.order.order_number}: {self.amount} of {self.stock_item.name}"


class Cart(models.Model):
    """
    Shopping cart of one customer (Warenkorb).

    Lines carry no price; the cart is priced from the catalog when shown
    and when checked out.
    """
    customer = models.OneToOneField(
        Customer,
        on_delete=models.CASCADE,
        related_name='cart'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Cart'
        verbose_name_plural = 'Carts'

    def __str__(self):
        return f"Cart of {self.customer.email}"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='cart_items'
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Cart Item'
        verbose_name_plural = 'Cart Items'
        ordering = ['added_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['cart', 'product'], name='unique_product_per_cart')
        ]

    def __str__(self):
        return f"{self.quantity}x {self.product.name}"

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.product.price


class InvoiceTemplate(models.Model):
    """
    Letterhead and payment terms rendered into invoices.

    At most one template is the default; saving a new default clears the flag
    on the others.
    """
    name = models.CharField(max_length=100)
    is_default = models.BooleanField(default=False, db_index=True)

    company_name = models.CharField(max_length=200)
    street = models.CharField(max_length=200, blank=True, default='')
    postal_code = models.CharField(max_length=10, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    country = models.CharField(max_length=100, default='Deutschland')
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=40, blank=True, default='')
    website = models.CharField(max_length=200, blank=True, default='')

    tax_number = models.CharField(max_length=50, blank=True, default='')
    vat_id = models.CharField(max_length=50, blank=True, default='')
    bank_name = models.CharField(max_length=100, blank=True, default='')
    iban = models.CharField(max_length=34, blank=True, default='')
    bic = models.CharField(max_length=11, blank=True, default='')

    is_small_business = models.BooleanField(
        default=False,
        help_text="Kleinunternehmer: invoices carry the §19 UStG note"
    )
    payment_terms_days = models.PositiveIntegerField(default=14)
    title = models.CharField(max_length=50, default='RECHNUNG')
    footer_note = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Invoice Template'
        verbose_name_plural = 'Invoice Templates'
        ordering = ['-is_default', 'name']

    def __str__(self):
        return f"{self.name}{' (default)' if self.is_default else ''}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        if self.is_default:
            InvoiceTemplate.objects.exclude(pk=self.pk).filter(is_default=True).update(is_default=False)
