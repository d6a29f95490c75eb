"""
Django Admin configuration for the e-mail log.
"""
from django.contrib import admin
from .models import EmailOut


@admin.register(EmailOut)
class EmailOutAdmin(admin.ModelAdmin):
    list_display = ['id', 'event_type', 'recipient', 'reference', 'delivery_status', 'attempts', 'created_at']
    list_filter = ['event_type', 'delivery_status', 'created_at']
    search_fields = ['recipient', 'subject', 'reference']
    ordering = ['-created_at']
    readonly_fields = [
        'event_type', 'recipient', 'subject', 'body', 'context', 'reference',
        'delivery_status', 'attempts', 'last_error', 'sent_at', 'failed_at', 'created_at'
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
