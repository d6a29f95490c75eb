"""
Django Admin configuration for customer accounts.
"""
from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['customer_number', 'full_name', 'email', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'newsletter_opt_in']
    search_fields = ['customer_number', 'email', 'first_name', 'last_name']
    ordering = ['last_name', 'first_name']
    readonly_fields = ['customer_number', 'password', 'last_login_at', 'created_at', 'updated_at']

    def has_delete_permission(self, request, obj=None):
        return False
