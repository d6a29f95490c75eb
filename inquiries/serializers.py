"""
Serializers for inquiries.
"""
from rest_framework import serializers

from orders.models import Order
from orders.serializers import OrderItemCreateSerializer
from .models import Inquiry, InquiryItem


class InquiryItemSerializer(serializers.ModelSerializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = InquiryItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price', 'subtotal']


class InquirySerializer(serializers.ModelSerializer):
    items = InquiryItemSerializer(many=True, read_only=True)
    customer_email = serializers.EmailField(source='customer.email', read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)

    class Meta:
        model = Inquiry
        fields = [
            'id', 'inquiry_id', 'customer', 'customer_email', 'status', 'total',
            'first_name', 'last_name', 'street', 'house_number', 'address_extra',
            'postal_code', 'city', 'country', 'shipping_address',
            'customer_note', 'admin_note', 'responded_by', 'responded_at',
            'order_number', 'items', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class InquiryCreateSerializer(serializers.Serializer):
    """
    Request format:
    {
        "items": [{"product_id": 1, "quantity": 20}],
        "customer_note": "Für eine Hochzeit",
        "street": "..."   (optional, defaults to the profile)
    }
    """
    items = OrderItemCreateSerializer(many=True, allow_empty=False)
    first_name = serializers.CharField(max_length=100, required=False)
    last_name = serializers.CharField(max_length=100, required=False)
    street = serializers.CharField(max_length=200, required=False)
    house_number = serializers.CharField(max_length=20, required=False)
    address_extra = serializers.CharField(max_length=200, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=10, required=False)
    city = serializers.CharField(max_length=100, required=False)
    country = serializers.CharField(max_length=100, required=False)
    shipping_address = serializers.DictField(required=False)
    customer_note = serializers.CharField(required=False, allow_blank=True)


class InquiryAnswerSerializer(serializers.Serializer):
    adminNote = serializers.CharField(required=False, allow_blank=True, default='')


class InquiryPaymentSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    payment_method = serializers.ChoiceField(
        choices=Order.PaymentMethod.choices,
        default=Order.PaymentMethod.PAYPAL
    )
