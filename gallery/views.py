"""
Gallery API Views.

Implements:
- GET /gallery/ - Active images in display order (public)
- GET /gallery/{id}/ - One active image (public)
- GET /gallery/admin/all/ - All images including inactive (admin)
- POST /gallery/admin/upload/ - Add an image (admin)
- POST /gallery/admin/reorder/ - Set display order (admin)
- PUT/PATCH/DELETE /gallery/admin/{id}/ - Edit or delete an image (admin)
"""
import logging

from rest_framework import generics
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsAdminRole
from .models import GalleryImage
from .serializers import GalleryImageSerializer, GalleryReorderSerializer
from .services import next_position, reorder_images

logger = logging.getLogger(__name__)


class GalleryListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = GalleryImageSerializer

    def get_queryset(self):
        return GalleryImage.objects.filter(is_active=True).order_by('position', 'id')


class GalleryDetailView(generics.RetrieveAPIView):
    permission_classes = [AllowAny]
    serializer_class = GalleryImageSerializer

    def get_queryset(self):
        return GalleryImage.objects.filter(is_active=True)


class GalleryAdminListView(generics.ListAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = GalleryImageSerializer
    queryset = GalleryImage.objects.order_by('position', 'id')


class GalleryUploadView(generics.CreateAPIView):
    """
    POST: Add an image. Without a position it is appended at the end.
    """
    permission_classes = [IsAdminRole]
    serializer_class = GalleryImageSerializer

    def perform_create(self, serializer):
        position = serializer.validated_data.get('position')
        image = serializer.save(
            uploaded_by=self.request.user.email,
            position=next_position() if position is None else position
        )
        logger.info(f"Gallery image #{image.pk} uploaded by {self.request.user.email}")


class GalleryAdminDetailView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = GalleryImageSerializer
    queryset = GalleryImage.objects.all()

    def perform_destroy(self, instance):
        logger.info(f"Gallery image #{instance.pk} deleted by {self.request.user.email}")
        instance.delete()


class GalleryReorderView(APIView):
    """
    POST: Set the display order.

    Request Body: {"image_ids": [3, 1, 2]}
    """
    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = GalleryReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        count = reorder_images(serializer.validated_data['image_ids'])
        return Response({
            'success': True,
            'message': f'{count} images reordered',
            'data': GalleryImageSerializer(
                GalleryImage.objects.order_by('position', 'id'), many=True
            ).data
        })
