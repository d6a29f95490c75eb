"""
Serializers for customer accounts.
"""
from rest_framework import serializers

from .models import Customer

MIN_PASSWORD_LENGTH = 8


def validate_password_strength(value):
    if len(value) < MIN_PASSWORD_LENGTH:
        raise serializers.ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if value.isalpha() or value.isdigit():
        raise serializers.ValidationError("Password must contain letters and digits")
    return value


class CustomerSerializer(serializers.ModelSerializer):
    """Self-service profile; role and status are read-only here."""

    class Meta:
        model = Customer
        fields = [
            'id', 'customer_number', 'first_name', 'last_name', 'email', 'phone',
            'street', 'house_number', 'address_extra', 'postal_code', 'city', 'country',
            'role', 'newsletter_opt_in', 'order_updates_opt_in', 'is_active',
            'last_login_at', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'customer_number', 'email', 'role', 'is_active',
            'last_login_at', 'created_at', 'updated_at'
        ]


class CustomerAdminSerializer(CustomerSerializer):
    """Admin edit: role and activation may be changed."""

    class Meta(CustomerSerializer.Meta):
        read_only_fields = ['id', 'customer_number', 'last_login_at', 'created_at', 'updated_at']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password_strength])

    class Meta:
        model = Customer
        fields = [
            'first_name', 'last_name', 'email', 'phone', 'password',
            'street', 'house_number', 'address_extra', 'postal_code', 'city', 'country',
            'newsletter_opt_in'
        ]

    def validate_email(self, value):
        value = value.strip().lower()
        if Customer.objects.filter(email=value).exists():
            raise serializers.ValidationError("An account with this e-mail already exists")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        customer = Customer(**validated_data)
        customer.set_password(password)
        customer.save()
        return customer


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
