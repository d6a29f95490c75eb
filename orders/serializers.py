"""
Serializers for order models.
"""
from rest_framework import serializers

from inventory.serializers import ProductMinimalSerializer
from .models import InvoiceTemplate, Order, OrderItem, OrderStatusChange


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem with product details."""
    product = ProductMinimalSerializer(read_only=True)
    subtotal = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price', 'subtotal']


class OrderItemCreateSerializer(serializers.Serializer):
    """Serializer for creating order items in order creation request."""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class OrderStatusChangeSerializer(serializers.ModelSerializer):

    class Meta:
        model = OrderStatusChange
        fields = ['from_status', 'to_status', 'admin_note', 'changed_by', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    """
    Serializer for Order model with nested items and status history.
    Uses prefetch_related for optimized queries.
    """
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusChangeSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'source', 'status',
            'email', 'first_name', 'last_name', 'customer_name', 'phone',
            'street', 'house_number', 'address_extra', 'postal_code', 'city', 'country',
            'shipping_address',
            'subtotal', 'tax_rate', 'tax_amount', 'shipping_cost', 'grand_total',
            'payment_method', 'payment_status', 'payment_transaction_id', 'paid_at',
            'carrier', 'tracking_number', 'shipped_at', 'delivered_at',
            'invoice_number', 'invoice_date',
            'customer_note', 'admin_note', 'items', 'status_history',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """
    Optimized serializer for listing orders.
    """
    customer_name = serializers.CharField(read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_name', 'email', 'status',
            'payment_status', 'grand_total', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        # Use prefetched items count if available
        if hasattr(obj, '_prefetched_objects_cache') and 'items' in obj._prefetched_objects_cache:
            return sum(item.quantity for item in obj.items.all())
        return obj.item_count


class OrderCreateSerializer(serializers.Serializer):
    """
    Serializer for creating orders via POST /orders/

    Request format:
    {
        "email": "kunde@example.com",
        "first_name": "Erika",
        "last_name": "Mustermann",
        "street": "Hauptstraße", "house_number": "1",
        "postal_code": "12345", "city": "Berlin",
        "items": [
            {"product_id": 1, "quantity": 2},
            {"product_id": 3, "quantity": 1}
        ]
    }
    """
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=40, required=False, allow_blank=True)
    street = serializers.CharField(max_length=200)
    house_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address_extra = serializers.CharField(max_length=200, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=10)
    city = serializers.CharField(max_length=100)
    country = serializers.CharField(max_length=100, required=False)
    shipping_address = serializers.DictField(required=False)
    customer_note = serializers.CharField(required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices, required=False)
    items = OrderItemCreateSerializer(many=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")

        # Check for duplicate products
        product_ids = [item['product_id'] for item in value]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError("Duplicate products in order items")

        return value


class ShipmentSerializer(serializers.Serializer):
    carrier = serializers.CharField(max_length=50, required=False, allow_blank=True)
    anbieter = serializers.CharField(max_length=50, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    sendungsnummer = serializers.CharField(max_length=100, required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    """
    Request body of PUT /orders/<id>/status/

    {"status": "verschickt", "adminNote": "...", "versand": {"anbieter": "DHL", "sendungsnummer": "..."}}
    """
    status = serializers.CharField(max_length=20)
    adminNote = serializers.CharField(required=False, allow_blank=True, default='')
    versand = ShipmentSerializer(required=False)


class CartAddSerializer(serializers.Serializer):
    """Request body of POST /cart/add/"""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartUpdateSerializer(serializers.Serializer):
    """Request body of PUT /cart/update/; quantity 0 removes the line."""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField()


class CartCheckoutSerializer(serializers.Serializer):
    """
    Request body of POST /cart/checkout/

    Every field is optional; missing buyer and address fields are taken
    from the customer profile.
    """
    first_name = serializers.CharField(max_length=100, required=False)
    last_name = serializers.CharField(max_length=100, required=False)
    phone = serializers.CharField(max_length=40, required=False, allow_blank=True)
    street = serializers.CharField(max_length=200, required=False)
    house_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    address_extra = serializers.CharField(max_length=200, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=10, required=False)
    city = serializers.CharField(max_length=100, required=False)
    country = serializers.CharField(max_length=100, required=False)
    shipping_address = serializers.DictField(required=False)
    customer_note = serializers.CharField(required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices, required=False)


class InvoiceTemplateSerializer(serializers.ModelSerializer):

    class Meta:
        model = InvoiceTemplate
        fields = [
            'id', 'name', 'is_default', 'company_name', 'street', 'postal_code', 'city',
            'country', 'email', 'phone', 'website', 'tax_number', 'vat_id',
            'bank_name', 'iban', 'bic', 'is_small_business', 'payment_terms_days',
            'title', 'footer_note', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
