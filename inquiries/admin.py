"""
Django Admin configuration for inquiries.
"""
from django.contrib import admin
from .models import Inquiry, InquiryItem


class InquiryItemInline(admin.TabularInline):
    model = InquiryItem
    extra = 0
    readonly_fields = ['product', 'product_name', 'quantity', 'unit_price']
    can_delete = False


@admin.register(Inquiry)
class InquiryAdmin(admin.ModelAdmin):
    list_display = ['inquiry_id', 'customer', 'status', 'total', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['inquiry_id', 'customer__email', 'last_name']
    ordering = ['-created_at']
    readonly_fields = ['inquiry_id', 'status', 'total', 'order', 'responded_by', 'responded_at', 'created_at']
    inlines = [InquiryItemInline]
