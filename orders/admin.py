"""
Django Admin configuration for order models.

Status changes go through the API so stock and e-mails stay consistent;
orders are read-only in the admin site.
"""
from django.contrib import admin
from .models import Cart, CartItem, InvoiceTemplate, Order, OrderItem, OrderStatusChange, StockReservation


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'unit_price', 'subtotal']
    can_delete = False

    def subtotal(self, obj):
        return f"{obj.subtotal} EUR"
    subtotal.short_description = 'Subtotal'


class OrderStatusChangeInline(admin.TabularInline):
    model = OrderStatusChange
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'admin_note', 'changed_by', 'created_at']
    can_delete = False


class StockReservationInline(admin.TabularInline):
    model = StockReservation
    extra = 0
    readonly_fields = ['stock_item', 'amount', 'created_at']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_name', 'status', 'payment_status', 'grand_total', 'created_at']
    list_filter = ['status', 'payment_status', 'source', 'created_at']
    search_fields = ['order_number', 'email', 'last_name']
    ordering = ['-created_at']
    readonly_fields = [
        'order_number', 'status', 'subtotal', 'tax_rate', 'tax_amount', 'shipping_cost',
        'grand_total', 'payment_status', 'paid_at', 'shipped_at', 'delivered_at',
        'invoice_number', 'invoice_date',
        'created_at', 'updated_at'
    ]
    inlines = [OrderItemInline, StockReservationInline, OrderStatusChangeInline]

    def has_delete_permission(self, request, obj=None):
        return False


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ['customer', 'updated_at']
    search_fields = ['customer__email']
    inlines = [CartItemInline]


@admin.register(InvoiceTemplate)
class InvoiceTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'company_name', 'is_default', 'payment_terms_days']
    list_filter = ['is_default', 'is_small_business']
