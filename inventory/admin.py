"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import FragranceOil, Packaging, Product, RawSoap, StockMovement


class StockItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'quantity', 'minimum_threshold', 'unit_cost', 'is_critical', 'is_available']
    list_filter = ['is_available', 'created_at']
    search_fields = ['name', 'description', 'supplier']
    ordering = ['name']
    readonly_fields = ['unit_cost', 'last_restocked_at', 'created_at', 'updated_at']

    def is_critical(self, obj):
        return obj.is_critical
    is_critical.boolean = True
    is_critical.short_description = 'Critical'


@admin.register(RawSoap)
class RawSoapAdmin(StockItemAdmin):
    pass


@admin.register(FragranceOil)
class FragranceOilAdmin(StockItemAdmin):
    list_filter = ['scent_family', 'intensity', 'is_available']


@admin.register(Packaging)
class PackagingAdmin(StockItemAdmin):
    list_filter = ['form', 'material', 'is_available']


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ['id', 'item_name', 'direction', 'amount', 'unit', 'quantity_after', 'reference', 'created_at']
    list_filter = ['kind', 'direction', 'created_at']
    search_fields = ['item_name', 'reference', 'reason']
    ordering = ['-created_at']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'price', 'weight_grams', 'raw_soap', 'packaging', 'is_active']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']
    raw_id_fields = ['raw_soap', 'second_raw_soap', 'fragrance_oil', 'packaging']
