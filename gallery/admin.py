"""
Django Admin configuration for the gallery.
"""
from django.contrib import admin
from .models import GalleryImage


@admin.register(GalleryImage)
class GalleryImageAdmin(admin.ModelAdmin):
    list_display = ['id', 'title', 'position', 'is_active', 'uploaded_by', 'created_at']
    list_filter = ['is_active']
    search_fields = ['title', 'description']
    ordering = ['position', 'id']
