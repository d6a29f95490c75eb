"""
Order Service Layer - checkout, the order status state machine, carts
and invoices.

Status transitions run in one transaction with the order row locked:
1. Validate the target is a direct successor of the current status
2. Run the side effects of entering the target status
   (payment stamp, stock reservation/release, shipment data)
3. Append an OrderStatusChange
4. Queue the customer e-mail (delivered after commit)

If any step fails nothing is changed: no status, no stock, no e-mail.
"""
import logging
from collections import OrderedDict, namedtuple
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.template.loader import render_to_string
from django.utils import timezone

from core.exceptions import IllegalTransitionError, NotFoundError, ValidationError
from customers.models import Customer
from inventory import services as stock
from inventory.models import Product
from notifications import dispatcher
from notifications.models import EmailOut
from .models import Cart, CartItem, InvoiceTemplate, Order, OrderItem, OrderStatusChange, StockReservation

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')

ALLOWED_TRANSITIONS = {
    'neu': ('bezahlt', 'storniert', 'abgelehnt'),
    'bezahlt': ('bestaetigt', 'storniert', 'abgelehnt'),
    'bestaetigt': ('verpackt', 'storniert'),
    'verpackt': ('verschickt', 'storniert'),
    'verschickt': ('zugestellt',),
    'zugestellt': ('abgeschlossen',),
    'abgeschlossen': (),
    'storniert': (),
    'abgelehnt': (),
}

BILLING_FIELDS = ['street', 'house_number', 'address_extra', 'postal_code', 'city', 'country']

# One priced order line; name and unit_price are stored as snapshots
OrderLine = namedtuple('OrderLine', ['product', 'quantity', 'name', 'unit_price'])


def allowed_targets(current: str) -> tuple:
    return ALLOWED_TRANSITIONS.get(str(current), ())


# =============================================================================
# Checkout
# =============================================================================

def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def calculate_totals(subtotal: Decimal) -> Dict[str, Decimal]:
    """
    Shipping is charged below the free-shipping threshold; tax is applied
    to subtotal plus shipping.
    """
    subtotal = _money(subtotal)
    shipping = Decimal('0.00')
    if subtotal < _money(settings.SHOP_FREE_SHIPPING_FROM):
        shipping = _money(settings.SHOP_SHIPPING_COST)
    tax_rate = _money(settings.SHOP_TAX_RATE)
    tax_amount = _money((subtotal + shipping) * tax_rate / 100)
    return {
        'subtotal': subtotal,
        'shipping_cost': shipping,
        'tax_rate': tax_rate,
        'tax_amount': tax_amount,
        'grand_total': subtotal + shipping + tax_amount,
    }


def validate_order_items(items: List[Dict]) -> None:
    """
    Validate order items structure.

    Args:
        items: List of dicts with 'product_id' and 'quantity'

    Raises:
        ValidationError: If validation fails
    """
    if not items:
        raise ValidationError("Order must contain at least one item")

    seen_products = set()
    for idx, item in enumerate(items):
        if 'product_id' not in item:
            raise ValidationError(f"Item {idx}: missing 'product_id'")
        if 'quantity' not in item:
            raise ValidationError(f"Item {idx}: missing 'quantity'")

        product_id = item['product_id']
        quantity = item['quantity']

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"Item {idx}: quantity must be a positive integer")

        if product_id in seen_products:
            raise ValidationError(f"Item {idx}: duplicate product_id {product_id}")
        seen_products.add(product_id)


def create_order(buyer: Dict, items: List[Dict], customer: Optional[Customer] = None,
                 status: str = Order.Status.NEW, source: str = Order.Source.SHOP,
                 payment: Optional[Dict] = None) -> Order:
    """
    Create an order from ``[{product_id, quantity}]`` at current catalog prices.

    Stock is not touched here; it is reserved when the order is confirmed.

    Args:
        buyer: email, first_name, last_name, phone, billing address fields,
               optional shipping_address, customer_note, payment_method
        items: List of dicts with 'product_id' and 'quantity'
        status: initial status ('neu', or 'bezahlt' for paid inquiries)
        payment: optional transaction_id for orders created already paid

    Returns:
        The created Order
    """
    validate_order_items(items)

    product_ids = [item['product_id'] for item in items]
    products = {p.id: p for p in Product.objects.filter(id__in=product_ids, is_active=True)}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise ValidationError(f"Products not found or inactive: {missing}")

    lines = [
        OrderLine(
            product=products[item['product_id']],
            quantity=item['quantity'],
            name=products[item['product_id']].name,
            unit_price=products[item['product_id']].price
        )
        for item in items
    ]
    return create_order_from_lines(buyer, lines, customer=customer, status=status,
                                   source=source, payment=payment)


def create_order_from_lines(buyer: Dict, lines: List[OrderLine], customer: Optional[Customer] = None,
                            status: str = Order.Status.NEW, source: str = Order.Source.SHOP,
                            payment: Optional[Dict] = None) -> Order:
    """
    Create an order from already priced lines (cart or inquiry snapshots).
    """
    if not lines:
        raise ValidationError("Order must contain at least one item")

    totals = calculate_totals(
        sum((line.unit_price * line.quantity for line in lines), Decimal('0'))
    )

    with transaction.atomic():
        order = Order(
            customer=customer,
            source=source,
            status=status,
            email=buyer['email'].strip().lower(),
            first_name=buyer['first_name'],
            last_name=buyer['last_name'],
            phone=buyer.get('phone', ''),
            shipping_address=buyer.get('shipping_address') or {},
            customer_note=buyer.get('customer_note', ''),
            payment_method=buyer.get('payment_method') or Order.PaymentMethod.PAYPAL,
            **{field: buyer[field] for field in BILLING_FIELDS if buyer.get(field)},
            **totals,
        )
        if status == Order.Status.PAID:
            order.payment_status = Order.PaymentStatus.PAID
            order.paid_at = timezone.now()
            order.payment_transaction_id = (payment or {}).get('transaction_id', '')
        order.save()

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=line.product,
                product_name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price
            )
            for line in lines
        ])
        OrderStatusChange.objects.create(
            order=order,
            from_status='',
            to_status=status,
            changed_by=buyer['email'],
        )

    logger.info(
        f"Order {order.order_number} created: {len(lines)} items, total {order.grand_total} EUR",
        extra={'order_number': order.order_number}
    )
    return order


# =============================================================================
# Stock reservation
# =============================================================================

def required_materials(order: Order) -> "OrderedDict":
    """
    Aggregate stock consumed by all line items as ``{stock_item_pk: (item, amount)}``.

    Items are ordered by primary key so concurrent confirmations update rows
    in the same order.
    """
    totals = {}
    for line in order.items.select_related(
        'product__raw_soap', 'product__second_raw_soap', 'product__packaging'
    ):
        for item, amount in line.product.materials_for(line.quantity):
            if item.pk in totals:
                totals[item.pk] = (totals[item.pk][0], totals[item.pk][1] + amount)
            else:
                totals[item.pk] = (item, amount)
    return OrderedDict(sorted(totals.items()))


def reserve_stock(order: Order, performed_by: str = '') -> List[StockReservation]:
    """
    Reserve every material the order consumes. All-or-nothing: the caller's
    transaction is rolled back by the InsufficientStockError.
    """
    reservations = []
    for item, amount in required_materials(order).values():
        stock.reserve(
            item,
            amount,
            reason=f"Bestellung {order.order_number} bestätigt",
            reference=order.order_number,
            performed_by=performed_by
        )
        reservations.append(StockReservation(order=order, stock_item=item, amount=amount))
    return StockReservation.objects.bulk_create(reservations)


def release_stock(order: Order, reason: str, performed_by: str = '') -> int:
    """Restock exactly what was reserved for the order and drop the reservations."""
    released = 0
    for reservation in order.reservations.select_related('stock_item').order_by('stock_item_id'):
        stock.restock(
            reservation.stock_item,
            reservation.amount,
            reason=reason,
            reference=order.order_number,
            performed_by=performed_by
        )
        released += 1
    order.reservations.all().delete()
    return released


# =============================================================================
# Status transitions
# =============================================================================

def _email_data(order: Order, admin_note: str = '') -> Dict:
    return {
        'order_number': order.order_number,
        'customer_name': order.customer_name,
        'items': [
            {'name': item.product_name, 'quantity': item.quantity, 'unit_price': str(item.unit_price)}
            for item in order.items.all()
        ],
        'subtotal': str(order.subtotal),
        'shipping_cost': str(order.shipping_cost),
        'tax_rate': str(order.tax_rate),
        'tax_amount': str(order.tax_amount),
        'grand_total': str(order.grand_total),
        'carrier': order.carrier,
        'tracking_number': order.tracking_number,
        'was_paid': order.paid_at is not None,
        'admin_note': admin_note,
    }


def _shipment_data(shipment: Optional[Dict]) -> Dict[str, str]:
    shipment = shipment or {}
    carrier = shipment.get('carrier') or shipment.get('anbieter') or ''
    tracking = shipment.get('tracking_number') or shipment.get('sendungsnummer') or shipment.get('tracking') or ''
    return {'carrier': str(carrier).strip(), 'tracking_number': str(tracking).strip()}


def transition_order_status(order_id: int, target: str, admin_note: str = '',
                            shipment: Optional[Dict] = None, changed_by: str = '') -> Order:
    """
    Move an order to ``target`` and apply the side effects of that status.

    Args:
        order_id: ID of the order
        target: new status, must be a direct successor of the current one
        admin_note: optional note, stored in the history and the e-mail
        shipment: carrier and tracking number, required for 'verschickt'
        changed_by: e-mail of the admin performing the change

    Raises:
        NotFoundError: unknown order
        IllegalTransitionError: target is not a direct successor
        ValidationError: shipment without tracking number
        InsufficientStockError: confirmation while materials are short
    """
    if target not in Order.Status.values:
        raise ValidationError(
            f"Unknown status '{target}'. Allowed: {', '.join(Order.Status.values)}",
            field='status'
        )

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFoundError(f'Order {order_id} not found')

        current = order.status
        if target not in allowed_targets(current):
            raise IllegalTransitionError(current, target)

        now = timezone.now()
        event = None
        order.status = target
        if admin_note:
            order.admin_note = admin_note

        if target == Order.Status.PAID:
            order.payment_status = Order.PaymentStatus.PAID
            order.paid_at = now

        elif target == Order.Status.CONFIRMED:
            reserve_stock(order, performed_by=changed_by)
            event = EmailOut.EventType.ORDER_CONFIRMATION

        elif target in (Order.Status.CANCELLED, Order.Status.REJECTED):
            release_stock(
                order,
                reason=f"Bestellung {order.order_number} {target}",
                performed_by=changed_by
            )
            if order.is_paid:
                order.payment_status = Order.PaymentStatus.REFUND_PENDING
            if target == Order.Status.CANCELLED:
                event = EmailOut.EventType.ORDER_CANCELLATION
            else:
                event = EmailOut.EventType.ORDER_REJECTION

        elif target == Order.Status.SHIPPED:
            data = _shipment_data(shipment)
            if not data['tracking_number']:
                raise ValidationError(
                    'A tracking number is required to ship an order',
                    field='versand.sendungsnummer'
                )
            order.carrier = data['carrier']
            order.tracking_number = data['tracking_number']
            order.shipped_at = now
            event = EmailOut.EventType.ORDER_SHIPPED

        elif target == Order.Status.DELIVERED:
            order.delivered_at = now

        order.save()
        OrderStatusChange.objects.create(
            order=order,
            from_status=current,
            to_status=target,
            admin_note=admin_note,
            changed_by=changed_by,
        )

        if event:
            dispatcher.send(
                event,
                order.email,
                _email_data(order, admin_note),
                reference=order.order_number
            )

    logger.info(
        f"Order {order.order_number}: {current} -> {target} by {changed_by or 'system'}",
        extra={'order_number': order.order_number}
    )
    return order


# =============================================================================
# Read models
# =============================================================================

def get_order_summary(order_id: int) -> Dict:
    """
    Get detailed order summary with optimized queries.

    Uses prefetch_related to minimize database hits.
    """
    order = Order.objects.prefetch_related('items', 'status_history').filter(id=order_id).first()
    if order is None:
        raise NotFoundError(f'Order {order_id} not found')

    return {
        'id': order.id,
        'order_number': order.order_number,
        'status': order.status,
        'allowed_transitions': list(allowed_targets(order.status)),
        'customer_name': order.customer_name,
        'email': order.email,
        'subtotal': str(order.subtotal),
        'shipping_cost': str(order.shipping_cost),
        'tax_amount': str(order.tax_amount),
        'grand_total': str(order.grand_total),
        'payment_status': order.payment_status,
        'tracking_number': order.tracking_number or None,
        'items': [
            {
                'product_id': item.product_id,
                'product_name': item.product_name,
                'quantity': item.quantity,
                'unit_price': str(item.unit_price),
                'subtotal': str(item.subtotal)
            }
            for item in order.items.all()
        ],
        'history': [
            {
                'from': change.from_status or None,
                'to': change.to_status,
                'admin_note': change.admin_note,
                'changed_by': change.changed_by,
                'at': change.created_at.isoformat()
            }
            for change in order.status_history.all()
        ],
        'created_at': order.created_at.isoformat(),
        'updated_at': order.updated_at.isoformat()
    }


# =============================================================================
# Cart
# =============================================================================

def get_cart(customer: Customer) -> Cart:
    cart, _ = Cart.objects.get_or_create(customer=customer)
    return cart


def cart_summary(cart: Optional[Cart]) -> Dict:
    """Cart lines priced from the catalog, plus total and item count."""
    if cart is None:
        return {'items': [], 'total': '0.00', 'itemCount': 0}

    items = list(cart.items.select_related('product'))
    return {
        'items': [
            {
                'product_id': item.product_id,
                'name': item.product.name,
                'price': str(item.product.price),
                'quantity': item.quantity,
                'weight_grams': str(item.product.weight_grams),
                'available': item.product.is_active,
                'subtotal': str(item.subtotal),
            }
            for item in items
        ],
        'total': str(_money(sum((item.subtotal for item in items), Decimal('0')))),
        'itemCount': sum(item.quantity for item in items),
    }


def _cart_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError('Quantity must be a whole number', field='quantity')
    return quantity


def add_to_cart(customer: Customer, product_id: int, quantity: int = 1) -> Cart:
    """Add a product, or raise the quantity of a product already in the cart."""
    quantity = _cart_quantity(quantity)
    if quantity < 1:
        raise ValidationError('Quantity must be at least 1', field='quantity')

    product = Product.objects.filter(pk=product_id, is_active=True).first()
    if product is None:
        raise NotFoundError(f'Product {product_id} not found')

    with transaction.atomic():
        cart = get_cart(customer)
        item, created = CartItem.objects.select_for_update().get_or_create(
            cart=cart, product=product, defaults={'quantity': quantity}
        )
        if not created:
            item.quantity = F('quantity') + quantity
            item.save(update_fields=['quantity'])
        cart.save(update_fields=['updated_at'])

    logger.info(f"Cart of {customer.email}: +{quantity}x {product.name}")
    return cart


def update_cart_item(customer: Customer, product_id: int, quantity: int) -> Cart:
    """Set the quantity of a cart line; zero or less removes it."""
    quantity = _cart_quantity(quantity)

    with transaction.atomic():
        cart = get_cart(customer)
        item = cart.items.select_for_update().filter(product_id=product_id).first()
        if item is None:
            raise NotFoundError(f'Product {product_id} is not in the cart')
        if quantity <= 0:
            item.delete()
        else:
            item.quantity = quantity
            item.save(update_fields=['quantity'])
        cart.save(update_fields=['updated_at'])
    return cart


def remove_from_cart(customer: Customer, product_id: int) -> Cart:
    cart = get_cart(customer)
    cart.items.filter(product_id=product_id).delete()
    cart.save(update_fields=['updated_at'])
    return cart


def clear_cart(customer: Customer) -> Cart:
    cart = get_cart(customer)
    cart.items.all().delete()
    cart.save(update_fields=['updated_at'])
    return cart


def checkout_cart(customer: Customer, data: Optional[Dict] = None) -> Order:
    """
    Turn the customer's cart into an order in status 'neu' and empty the cart.

    Buyer and billing fields default to the customer profile; ``data`` may
    override them. The order is priced from the catalog at checkout.

    Raises:
        ValidationError: empty cart, missing address or inactive product
    """
    data = data or {}
    with transaction.atomic():
        cart = get_cart(customer)
        items = [
            {'product_id': item.product_id, 'quantity': item.quantity}
            for item in cart.items.select_for_update()
        ]
        if not items:
            raise ValidationError('The cart is empty')

        buyer = {
            'email': customer.email,
            'first_name': data.get('first_name') or customer.first_name,
            'last_name': data.get('last_name') or customer.last_name,
            'phone': data.get('phone') or customer.phone,
            'shipping_address': data.get('shipping_address') or {},
            'customer_note': data.get('customer_note', ''),
            'payment_method': data.get('payment_method'),
        }
        buyer.update({field: data.get(field) or getattr(customer, field) for field in BILLING_FIELDS})
        missing = [field for field in ('street', 'postal_code', 'city') if not buyer[field]]
        if missing:
            raise ValidationError(f"Billing address incomplete: {', '.join(missing)}", field=missing[0])

        order = create_order(buyer, items, customer=customer)
        cart.items.all().delete()

    logger.info(
        f"Cart of {customer.email} checked out as order {order.order_number}",
        extra={'order_number': order.order_number}
    )
    return order


# =============================================================================
# Invoices
# =============================================================================

INVOICE_STATUSES = Order.REVENUE_STATUSES


def _next_invoice_number(now) -> str:
    prefix = f"RE-{now:%Y%m}-"
    last = (
        Order.objects.filter(invoice_number__startswith=prefix)
        .order_by('-invoice_number')
        .values_list('invoice_number', flat=True)
        .first()
    )
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def assign_invoice_number(order: Order) -> Order:
    """
    Number the invoice of ``order`` once: RE-yyyymm-nnnn, counting per month.

    Raises:
        ValidationError: the order was never paid or has been cancelled/rejected
    """
    if order.invoice_number:
        return order
    if order.status not in INVOICE_STATUSES:
        raise ValidationError(
            f'No invoice for order {order.order_number} in status {order.status}'
        )

    now = timezone.now()
    for attempt in range(3):
        try:
            with transaction.atomic():
                order.invoice_number = _next_invoice_number(now)
                order.invoice_date = now
                order.save(update_fields=['invoice_number', 'invoice_date', 'updated_at'])
            break
        except IntegrityError:
            # Another invoice took the number in the meantime
            order.invoice_number = None
            if attempt == 2:
                raise

    logger.info(
        f"Invoice {order.invoice_number} issued for order {order.order_number}",
        extra={'order_number': order.order_number}
    )
    return order


def default_invoice_template() -> InvoiceTemplate:
    template = InvoiceTemplate.objects.filter(is_default=True).first()
    if template is None:
        template = InvoiceTemplate(name='Standard', company_name=settings.SHOP_NAME)
    return template


def render_invoice(order_id: int, template_id: Optional[int] = None) -> Dict:
    """
    Render the invoice of an order as HTML with the given or default template.

    The invoice number is assigned on first rendering and kept afterwards.
    """
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFoundError(f'Order {order_id} not found')
        assign_invoice_number(order)

    if template_id is not None:
        template = InvoiceTemplate.objects.filter(pk=template_id).first()
        if template is None:
            raise NotFoundError(f'Invoice template {template_id} not found')
    else:
        template = default_invoice_template()

    due_date = order.invoice_date + timedelta(days=template.payment_terms_days)
    html = render_to_string('orders/invoice.html', {
        'order': order,
        'items': order.items.all(),
        'company': template,
        'due_date': due_date,
    })
    return {
        'invoice_number': order.invoice_number,
        'invoice_date': order.invoice_date,
        'due_date': due_date,
        'order_number': order.order_number,
        'template': template.name,
        'html': html,
    }
