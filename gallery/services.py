"""
Gallery Service Layer - ordering of images.
"""
import logging
from typing import List

from django.db import transaction
from django.db.models import Max

from core.exceptions import ValidationError
from .models import GalleryImage

logger = logging.getLogger(__name__)


def next_position() -> int:
    highest = GalleryImage.objects.aggregate(highest=Max('position'))['highest']
    return 0 if highest is None else highest + 1


def reorder_images(image_ids: List[int]) -> int:
    """
    Give the listed images positions 0..n-1 in list order.

    Raises:
        ValidationError: duplicate or unknown ids
    """
    if len(image_ids) != len(set(image_ids)):
        raise ValidationError('Duplicate image ids', field='image_ids')

    with transaction.atomic():
        images = {
            image.pk: image
            for image in GalleryImage.objects.select_for_update().filter(pk__in=image_ids)
        }
        unknown = [pk for pk in image_ids if pk not in images]
        if unknown:
            raise ValidationError(f'Unknown image ids: {unknown}', field='image_ids')

        for position, pk in enumerate(image_ids):
            images[pk].position = position
        GalleryImage.objects.bulk_update(images.values(), ['position'])

    logger.info(f"Gallery reordered: {len(image_ids)} images")
    return len(image_ids)
