"""
Serializers for gallery images.
"""
from rest_framework import serializers

from .models import MAX_IMAGE_DATA_LENGTH, GalleryImage


class GalleryImageSerializer(serializers.ModelSerializer):

    class Meta:
        model = GalleryImage
        fields = [
            'id', 'title', 'description', 'image_data', 'image_type', 'position',
            'is_active', 'uploaded_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'uploaded_by', 'created_at', 'updated_at']
        extra_kwargs = {'position': {'required': False}}

    def validate_image_data(self, value):
        value = value.strip()
        if not value.startswith(('http://', 'https://', 'data:image/')):
            raise serializers.ValidationError("Image must be an http(s) URL or a data:image URI")
        if value.startswith('data:image/') and ';base64,' not in value:
            raise serializers.ValidationError("Data URIs must be base64 encoded")
        if len(value) > MAX_IMAGE_DATA_LENGTH:
            raise serializers.ValidationError("Image is too large")
        return value

    def validate_image_type(self, value):
        if not value.startswith('image/'):
            raise serializers.ValidationError("Only image types are allowed")
        return value


class GalleryReorderSerializer(serializers.Serializer):
    image_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
