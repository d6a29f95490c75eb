"""
Gallery Models - showcase images of finished soaps and workpieces.
"""
from django.db import models

# Roughly a 5 MB image once base64 encoded
MAX_IMAGE_DATA_LENGTH = 7 * 1024 * 1024


class GalleryImage(models.Model):
    """
    One gallery image, stored as a URL or as a base64 data URI.

    Lower position is shown first. Inactive images are only visible to admins.
    """
    title = models.CharField(max_length=200, blank=True, default='')
    description = models.TextField(blank=True, default='')
    image_data = models.TextField(help_text="http(s) URL or data:image/...;base64 URI")
    image_type = models.CharField(max_length=50, default='image/jpeg', help_text="MIME type")
    position = models.PositiveIntegerField(default=0, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    uploaded_by = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Gallery Image'
        verbose_name_plural = 'Gallery Images'
        ordering = ['position', 'id']
        indexes = [
            models.Index(fields=['is_active', 'position']),
        ]

    def __str__(self):
        return self.title or f"Image #{self.pk}"
