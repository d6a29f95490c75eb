"""
Tests for the gallery.

Test Cases:
1. Visitors see active images in display order
2. Admins upload, edit and delete images
3. Image data must be a URL or a base64 image URI
4. Reordering assigns positions in list order
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import ValidationError
from customers.models import Customer
from gallery.models import GalleryImage
from gallery.services import next_position, reorder_images

PIXEL = 'data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk'


def make_customer(email, role=Customer.Role.CUSTOMER):
    customer = Customer(first_name='Erika', last_name='Mustermann', email=email, role=role)
    customer.set_password('geheim123')
    customer.save()
    return customer


class GalleryAPITestCase(APITestCase):
    """Test cases for the gallery endpoints."""

    def setUp(self):
        self.admin = make_customer('admin@example.com', role=Customer.Role.ADMIN)
        self.customer = make_customer('erika@example.com')
        self.first = GalleryImage.objects.create(title='Lavendel', image_data=PIXEL, position=1)
        self.second = GalleryImage.objects.create(title='Rose', image_data=PIXEL, position=0)
        self.hidden = GalleryImage.objects.create(
            title='Entwurf', image_data=PIXEL, position=2, is_active=False
        )

    def test_public_list_shows_active_images_in_order(self):
        response = self.client.get('/api/gallery/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([image['title'] for image in response.data], ['Rose', 'Lavendel'])

    def test_inactive_image_is_hidden(self):
        response = self.client.get(f'/api/gallery/{self.hidden.pk}/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_list_includes_inactive(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/gallery/admin/all/')

        self.assertEqual(len(response.data), 3)

    def test_upload_requires_admin(self):
        payload = {'title': 'Honig', 'image_data': PIXEL, 'image_type': 'image/png'}

        self.client.force_authenticate(user=self.customer)
        response = self.client.post('/api/gallery/admin/upload/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post('/api/gallery/admin/upload/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        image = GalleryImage.objects.get(title='Honig')
        self.assertEqual(image.position, 3)
        self.assertEqual(image.uploaded_by, 'admin@example.com')

    def test_upload_rejects_invalid_image_data(self):
        self.client.force_authenticate(user=self.admin)

        for payload in (
            {'image_data': 'ftp://example.com/seife.jpg'},
            {'image_data': 'data:image/png,rohdaten'},
            {'image_data': PIXEL, 'image_type': 'application/pdf'},
        ):
            response = self.client.post('/api/gallery/admin/upload/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.json()['type'], 'VALIDATION_ERROR')

        self.assertEqual(GalleryImage.objects.count(), 3)

    def test_admin_edits_and_deletes(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            f'/api/gallery/admin/{self.hidden.pk}/', {'is_active': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.hidden.refresh_from_db()
        self.assertTrue(self.hidden.is_active)

        response = self.client.delete(f'/api/gallery/admin/{self.first.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(GalleryImage.objects.filter(pk=self.first.pk).exists())

    def test_reorder(self):
        """
        Given: Three images
        When: The admin submits a new order
        Then: Positions follow the submitted list
        """
        self.client.force_authenticate(user=self.admin)
        ids = [self.hidden.pk, self.first.pk, self.second.pk]

        response = self.client.post('/api/gallery/admin/reorder/', {'image_ids': ids}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([image['id'] for image in response.data['data']], ids)

    def test_reorder_unknown_image(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            '/api/gallery/admin/reorder/', {'image_ids': [self.first.pk, 999999]}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.first.refresh_from_db()
        self.assertEqual(self.first.position, 1)


class GalleryServiceTestCase(TestCase):

    def test_next_position_on_empty_gallery(self):
        self.assertEqual(next_position(), 0)

    def test_reorder_rejects_duplicates(self):
        image = GalleryImage.objects.create(image_data=PIXEL)

        with self.assertRaises(ValidationError):
            reorder_images([image.pk, image.pk])
