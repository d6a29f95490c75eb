"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from rest_framework import serializers

from .models import FragranceOil, Packaging, Product, RawSoap, StockMovement

STOCK_ITEM_FIELDS = [
    'id', 'kind', 'name', 'description', 'supplier', 'purchase_price', 'unit_cost',
    'quantity', 'unit', 'minimum_threshold', 'stock_status', 'is_critical',
    'is_available', 'last_restocked_at', 'next_restock_at', 'created_at', 'updated_at'
]
STOCK_ITEM_READ_ONLY = [
    'id', 'kind', 'unit_cost', 'last_restocked_at', 'created_at', 'updated_at'
]


class StockItemSerializer(serializers.ModelSerializer):
    """Common fields of every material kind plus derived stock status."""
    unit = serializers.CharField(read_only=True)
    stock_status = serializers.CharField(read_only=True)
    is_critical = serializers.BooleanField(read_only=True)

    # Recomputed by the model on save
    derived_fields = ['unit_cost', 'updated_at']

    def validate_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative")
        if self.Meta.model.KIND != RawSoap.KIND and value != int(value):
            raise serializers.ValidationError("Stock must be a whole number")
        return value

    def update(self, instance, validated_data):
        # Stock of an existing material only moves through reserve/restock
        quantity = validated_data.pop('quantity', None)
        if quantity is not None and quantity != instance.quantity:
            raise serializers.ValidationError(
                {'quantity': "Stock can only be changed through the stock adjustment endpoint"}
            )

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save(update_fields=list(validated_data) + self.derived_fields)
        instance.refresh_from_db(fields=['quantity'])
        return instance


class RawSoapSerializer(StockItemSerializer):
    cost_per_100g = serializers.DecimalField(max_digits=12, decimal_places=4, read_only=True)

    class Meta:
        model = RawSoap
        fields = STOCK_ITEM_FIELDS + ['package_grams', 'colour', 'cost_per_100g']
        read_only_fields = STOCK_ITEM_READ_ONLY


class FragranceOilSerializer(StockItemSerializer):
    total_drops = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    available_portions = serializers.IntegerField(read_only=True)

    class Meta:
        model = FragranceOil
        fields = STOCK_ITEM_FIELDS + [
            'volume_ml', 'drops_per_ml', 'total_drops', 'scent_family', 'intensity',
            'recommended_drops', 'maximum_drops', 'available_portions',
            'shelf_life_months', 'product_link'
        ]
        read_only_fields = STOCK_ITEM_READ_ONLY

    def validate(self, attrs):
        recommended = attrs.get('recommended_drops', getattr(self.instance, 'recommended_drops', 5))
        maximum = attrs.get('maximum_drops', getattr(self.instance, 'maximum_drops', 10))
        if recommended > maximum:
            raise serializers.ValidationError(
                {'recommended_drops': "Recommended dosage cannot exceed the maximum"}
            )
        return attrs


class PackagingSerializer(StockItemSerializer):
    derived_fields = StockItemSerializer.derived_fields + ['form']

    class Meta:
        model = Packaging
        fields = STOCK_ITEM_FIELDS + [
            'package_quantity', 'form', 'material', 'size', 'colour',
            'storage_location', 'order_code', 'max_weight_grams'
        ]
        read_only_fields = STOCK_ITEM_READ_ONLY


class StockMovementSerializer(serializers.ModelSerializer):
    """Read-only audit trail entry."""

    class Meta:
        model = StockMovement
        fields = [
            'id', 'stock_item', 'item_name', 'kind', 'direction', 'amount', 'unit',
            'quantity_before', 'quantity_after', 'reason', 'reference',
            'performed_by', 'created_at'
        ]
        read_only_fields = fields


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product with resolved material names."""
    raw_soap_name = serializers.CharField(source='raw_soap.name', read_only=True)
    second_raw_soap_name = serializers.CharField(
        source='second_raw_soap.name', read_only=True, default=None
    )
    fragrance_oil_name = serializers.CharField(
        source='fragrance_oil.name', read_only=True, default=None
    )
    packaging_name = serializers.CharField(source='packaging.name', read_only=True, default=None)
    material_cost = serializers.DecimalField(max_digits=12, decimal_places=4, read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'price', 'weight_grams',
            'raw_soap', 'raw_soap_name', 'second_raw_soap', 'second_raw_soap_name',
            'second_soap_percent', 'fragrance_oil', 'fragrance_oil_name',
            'packaging', 'packaging_name', 'material_cost', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        second = attrs.get('second_raw_soap', getattr(self.instance, 'second_raw_soap', None))
        percent = attrs.get('second_soap_percent', getattr(self.instance, 'second_soap_percent', 0))
        first = attrs.get('raw_soap', getattr(self.instance, 'raw_soap', None))
        if second is None and percent:
            raise serializers.ValidationError(
                {'second_soap_percent': "A second raw soap is required for a split"}
            )
        if second is not None:
            if not 0 < percent < 100:
                raise serializers.ValidationError(
                    {'second_soap_percent': "Split must be between 1 and 99 percent"}
                )
            if first is not None and second.pk == first.pk:
                raise serializers.ValidationError(
                    {'second_raw_soap': "Second raw soap must differ from the first"}
                )
        return attrs


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for order lines and nested representations."""

    class Meta:
        model = Product
        fields = ['id', 'name', 'price']
