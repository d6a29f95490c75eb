"""
Inquiry Service Layer - create, answer and pay inquiries.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from customers.models import Customer
from inventory.models import Product
from notifications import dispatcher
from notifications.models import EmailOut
from orders.models import Order
from orders.services import BILLING_FIELDS, OrderLine, create_order_from_lines, validate_order_items
from .models import Inquiry, InquiryItem

logger = logging.getLogger(__name__)


def create_inquiry(customer: Customer, items: List[Dict], data: Optional[Dict] = None) -> Inquiry:
    """
    Create a pending inquiry. Address fields default to the customer profile.
    """
    data = data or {}
    validate_order_items(items)

    product_ids = [item['product_id'] for item in items]
    products = {p.id: p for p in Product.objects.filter(id__in=product_ids, is_active=True)}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise ValidationError(f"Products not found or inactive: {missing}")

    address = {field: data.get(field) or getattr(customer, field) for field in BILLING_FIELDS}

    with transaction.atomic():
        inquiry = Inquiry.objects.create(
            customer=customer,
            first_name=data.get('first_name') or customer.first_name,
            last_name=data.get('last_name') or customer.last_name,
            shipping_address=data.get('shipping_address') or {},
            customer_note=data.get('customer_note', ''),
            total=sum(
                (products[item['product_id']].price * item['quantity'] for item in items),
                Decimal('0')
            ),
            **address
        )
        InquiryItem.objects.bulk_create([
            InquiryItem(
                inquiry=inquiry,
                product=products[item['product_id']],
                product_name=products[item['product_id']].name,
                quantity=item['quantity'],
                unit_price=products[item['product_id']].price
            )
            for item in items
        ])

    logger.info(f"Inquiry {inquiry.inquiry_id} created by {customer.email}: total {inquiry.total} EUR")
    return inquiry


def _locked_inquiry(pk: int) -> Inquiry:
    inquiry = Inquiry.objects.select_for_update().select_related('customer').filter(pk=pk).first()
    if inquiry is None:
        raise NotFoundError(f'Inquiry {pk} not found')
    return inquiry


def _email_data(inquiry: Inquiry) -> Dict:
    return {
        'inquiry_id': inquiry.inquiry_id,
        'customer_name': inquiry.customer_name,
        'items': [
            {'name': item.product_name, 'quantity': item.quantity, 'unit_price': str(item.unit_price)}
            for item in inquiry.items.all()
        ],
        'total': str(inquiry.total),
        'admin_note': inquiry.admin_note,
    }


def _respond(pk: int, status: str, event: str, admin_note: str, responded_by: str) -> Inquiry:
    with transaction.atomic():
        inquiry = _locked_inquiry(pk)
        if not inquiry.is_pending:
            raise ValidationError(
                f'Inquiry {inquiry.inquiry_id} has already been answered ({inquiry.status})'
            )
        inquiry.status = status
        inquiry.admin_note = admin_note
        inquiry.responded_by = responded_by
        inquiry.responded_at = timezone.now()
        inquiry.save()

        dispatcher.send(event, inquiry.customer.email, _email_data(inquiry), reference=inquiry.inquiry_id)

    logger.info(f"Inquiry {inquiry.inquiry_id} {status} by {responded_by}")
    return inquiry


def accept_inquiry(pk: int, admin_note: str = '', responded_by: str = '') -> Inquiry:
    """Accept a pending inquiry; the customer may now pay it."""
    return _respond(
        pk, Inquiry.Status.ACCEPTED, EmailOut.EventType.INQUIRY_ACCEPTED,
        admin_note or 'Anfrage wurde angenommen', responded_by
    )


def reject_inquiry(pk: int, admin_note: str = '', responded_by: str = '') -> Inquiry:
    """Reject a pending inquiry."""
    return _respond(
        pk, Inquiry.Status.REJECTED, EmailOut.EventType.INQUIRY_REJECTED,
        admin_note, responded_by
    )


def pay_inquiry(pk: int, customer: Customer, transaction_id: str = '',
                payment_method: str = Order.PaymentMethod.PAYPAL) -> Order:
    """
    Record payment of an accepted inquiry and convert it into an order in
    status 'bezahlt'.

    Raises:
        AuthorizationError: inquiry belongs to another customer
        ValidationError: inquiry is not accepted (pending, rejected or already paid)
    """
    with transaction.atomic():
        inquiry = _locked_inquiry(pk)
        if inquiry.customer_id != customer.pk:
            raise AuthorizationError('You can only pay your own inquiries')
        if not inquiry.is_payable:
            raise ValidationError(
                f'Inquiry {inquiry.inquiry_id} cannot be paid (status: {inquiry.status})'
            )

        buyer = {
            'email': customer.email,
            'first_name': inquiry.first_name,
            'last_name': inquiry.last_name,
            'phone': customer.phone,
            'shipping_address': inquiry.shipping_address,
            'customer_note': inquiry.customer_note,
            'payment_method': payment_method,
        }
        buyer.update({field: getattr(inquiry, field) for field in BILLING_FIELDS})

        # Lines keep the prices the admin accepted
        lines = [
            OrderLine(item.product, item.quantity, item.product_name, item.unit_price)
            for item in inquiry.items.select_related('product')
        ]
        order = create_order_from_lines(
            buyer,
            lines,
            customer=customer,
            status=Order.Status.PAID,
            source=Order.Source.INQUIRY,
            payment={'transaction_id': transaction_id}
        )
        inquiry.status = Inquiry.Status.CONVERTED
        inquiry.order = order
        inquiry.save(update_fields=['status', 'order', 'updated_at'])

    logger.info(
        f"Inquiry {inquiry.inquiry_id} paid and converted to order {order.order_number}",
        extra={'order_number': order.order_number}
    )
    return order
