"""
Serializers for the e-mail log.
"""
from rest_framework import serializers

from .models import EmailOut


class EmailOutSerializer(serializers.ModelSerializer):

    class Meta:
        model = EmailOut
        fields = [
            'id', 'event_type', 'recipient', 'subject', 'body', 'reference',
            'delivery_status', 'attempts', 'last_error', 'sent_at', 'failed_at',
            'created_at'
        ]
        read_only_fields = fields
