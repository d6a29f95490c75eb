"""
Tests for stock handling and material cost calculation.

Test Cases:
1. Derived unit costs and stock status per material kind
2. reserve never takes stock below zero, restock always succeeds
3. Cost calculation is linear and reports shortages without failing
4. Stock adjustment, calculation and statistics endpoints
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from customers.models import Customer
from inventory import services
from inventory.models import FragranceOil, Packaging, Product, RawSoap, StockItem, StockMovement
from inventory.serializers import RawSoapSerializer


def make_customer(email, role=Customer.Role.CUSTOMER):
    customer = Customer(first_name='Test', last_name='User', email=email, role=role)
    customer.set_password('geheim123')
    customer.save()
    return customer


class MaterialModelTestCase(TestCase):
    """Test cases for derived material values."""

    def test_raw_soap_unit_cost_per_gram(self):
        soap = RawSoap.objects.create(
            name='Glycerinseife', purchase_price=Decimal('12.90'), package_grams=Decimal('1000')
        )

        self.assertEqual(soap.kind, StockItem.Kind.RAW_SOAP)
        self.assertEqual(soap.unit, 'g')
        self.assertEqual(soap.unit_cost, Decimal('0.0129'))
        self.assertEqual(soap.cost_per_100g, Decimal('1.2900'))

    def test_fragrance_oil_unit_cost_per_drop(self):
        """15 ml at 20 drops/ml is 300 drops; 15.00 EUR / 300 = 0.05 EUR per drop."""
        oil = FragranceOil.objects.create(
            name='Lavendel', purchase_price=Decimal('15.00'), volume_ml=Decimal('15')
        )

        self.assertEqual(oil.total_drops, Decimal('300'))
        self.assertEqual(oil.unit_cost, Decimal('0.05'))
        self.assertEqual(oil.unit, 'Tropfen')

    def test_fragrance_dosage_rule(self):
        self.assertEqual(FragranceOil.drops_for_weight(50), 1)
        self.assertEqual(FragranceOil.drops_for_weight(51), 2)
        self.assertEqual(FragranceOil.drops_for_weight(Decimal('120')), 3)

    def test_fragrance_dosage_verdict(self):
        oil = FragranceOil.objects.create(name='Rose', purchase_price=Decimal('8.50'))

        self.assertEqual(oil.dosage_verdict(5), 'optimal')
        self.assertEqual(oil.dosage_verdict(8), 'stark')
        self.assertEqual(oil.dosage_verdict(11), 'zu_stark')

    def test_packaging_unit_cost_rounded_to_four_places(self):
        packaging = Packaging.objects.create(
            name='Tüte klein', purchase_price=Decimal('10.00'), package_quantity=3
        )

        self.assertEqual(packaging.unit_cost, Decimal('3.3333'))
        self.assertEqual(packaging.form, Packaging.Form.BAG)

    def test_stock_status_ladder(self):
        packaging = Packaging.objects.create(
            name='Schachtel', purchase_price=Decimal('5.00'), package_quantity=10,
            quantity=Decimal('0'), minimum_threshold=Decimal('10')
        )
        self.assertEqual(packaging.stock_status, 'leer')

        packaging.quantity = Decimal('10')
        self.assertEqual(packaging.stock_status, 'kritisch')
        self.assertTrue(packaging.is_critical)

        packaging.quantity = Decimal('20')
        self.assertEqual(packaging.stock_status, 'niedrig')

        packaging.quantity = Decimal('21')
        self.assertEqual(packaging.stock_status, 'ausreichend')
        self.assertFalse(packaging.is_critical)

    def test_database_rejects_negative_stock(self):
        soap = RawSoap.objects.create(name='Sheabutter', purchase_price=Decimal('18.50'))

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                StockItem.objects.filter(pk=soap.pk).update(quantity=Decimal('-1'))

    def test_two_soap_product_splits_weight(self):
        first = RawSoap.objects.create(name='Glycerin klar', purchase_price=Decimal('10.00'))
        second = RawSoap.objects.create(name='Ziegenmilch', purchase_price=Decimal('20.00'))
        box = Packaging.objects.create(name='Box', purchase_price=Decimal('5.00'), package_quantity=10)
        product = Product.objects.create(
            name='Duo', price=Decimal('6.90'), weight_grams=Decimal('100'),
            raw_soap=first, second_raw_soap=second, second_soap_percent=30, packaging=box
        )

        materials = {item.pk: amount for item, amount in product.materials_for(3)}

        self.assertEqual(materials[first.pk], Decimal('210'))
        self.assertEqual(materials[second.pk], Decimal('90'))
        self.assertEqual(materials[box.pk], Decimal('3'))


class ReserveRestockTestCase(TestCase):
    """Test cases for the atomic stock mutations."""

    def setUp(self):
        self.soap = RawSoap.objects.create(
            name='Glycerinseife', purchase_price=Decimal('12.90'), quantity=Decimal('100')
        )
        self.oil = FragranceOil.objects.create(
            name='Lavendel', purchase_price=Decimal('6.90'), quantity=Decimal('50')
        )

    def test_reserve_then_refuse(self):
        """
        Test: reserve decrements, an oversized reserve changes nothing.

        Given: 100 g in stock
        When: reserving 30 g, then 80 g
        Then: stock is 70 after the first call and stays 70 after the failure
        """
        services.reserve(self.soap, 30, reason='test')
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('70'))

        with self.assertRaises(InsufficientStockError) as context:
            services.reserve(self.soap, 80)

        self.assertIn('Insufficient stock', str(context.exception))
        self.assertEqual(context.exception.available, Decimal('70'))
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('70'))

    def test_reserve_exact_stock(self):
        services.reserve(self.soap, 100)

        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('0'))

    def test_reserve_records_movement(self):
        services.reserve(self.soap, Decimal('25.5'), reason='Verbrauch', reference='GM1')

        movement = StockMovement.objects.get(stock_item=self.soap)
        self.assertEqual(movement.direction, StockMovement.Direction.OUT)
        self.assertEqual(movement.quantity_before, Decimal('100'))
        self.assertEqual(movement.quantity_after, Decimal('74.5'))
        self.assertEqual(movement.reference, 'GM1')

    def test_failed_reserve_records_nothing(self):
        with self.assertRaises(InsufficientStockError):
            services.reserve(self.oil, 51)

        self.assertFalse(StockMovement.objects.exists())

    def test_drops_must_be_whole_numbers(self):
        with self.assertRaises(ValidationError):
            services.reserve(self.oil, Decimal('1.5'))

    def test_amount_must_be_positive(self):
        for amount in (0, -5, 'abc', None):
            with self.assertRaises(ValidationError):
                services.reserve(self.soap, amount)

    def test_restock_increments_and_stamps(self):
        services.restock(self.oil, 25, reason='Lieferung')

        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, Decimal('75'))
        self.assertIsNotNone(self.oil.last_restocked_at)

    def test_reserve_restock_round_trip(self):
        services.reserve(self.soap, 40)
        services.restock(self.soap, 40)

        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('100'))

    def test_adjust_stock_rejects_unknown_action(self):
        with self.assertRaises(ValidationError):
            services.adjust_stock(self.soap, 'wegwerfen', 10)


class CostCalculationTestCase(TestCase):
    """Test cases for material cost calculation."""

    def setUp(self):
        # 15.00 EUR / 300 drops = 0.05 per drop, 24.00 EUR / 300 drops = 0.08 per drop
        self.oil_a = FragranceOil.objects.create(
            name='Öl A', purchase_price=Decimal('15.00'), quantity=Decimal('200')
        )
        self.oil_b = FragranceOil.objects.create(
            name='Öl B', purchase_price=Decimal('24.00'), quantity=Decimal('3')
        )

    def test_fragrance_cost_example(self):
        """
        Given: oil A at 0.05/drop and oil B at 0.08/drop
        When: calculating 10 drops of A and 5 drops of B
        Then: total is 0.90
        """
        result = services.calculate_costs(FragranceOil, [
            {'bezeichnung': 'Öl A', 'amount': 10},
            {'bezeichnung': 'Öl B', 'amount': 5},
        ])

        self.assertEqual(result['gesamtkosten'], Decimal('0.9000'))
        self.assertEqual(result['gesamtkostenAnzeige'], Decimal('0.90'))
        self.assertEqual(result['waehrung'], 'EUR')

    def test_cost_is_linear(self):
        combined = services.calculate_costs(FragranceOil, [
            {'bezeichnung': 'Öl A', 'amount': 7},
            {'bezeichnung': 'Öl B', 'amount': 13},
        ])
        separate = (
            services.calculate_costs(FragranceOil, [{'bezeichnung': 'Öl A', 'amount': 7}])['gesamtkosten']
            + services.calculate_costs(FragranceOil, [{'bezeichnung': 'Öl B', 'amount': 13}])['gesamtkosten']
        )

        self.assertEqual(combined['gesamtkosten'], separate)

    def test_shortage_is_reported_not_raised(self):
        result = services.calculate_costs(FragranceOil, [{'bezeichnung': 'Öl B', 'amount': 5}])

        line = result['berechnungen'][0]
        self.assertFalse(line['ausreichend'])
        self.assertEqual(line['empfehlungStatus'], 'optimal')
        self.oil_b.refresh_from_db()
        self.assertEqual(self.oil_b.quantity, Decimal('3'))

    def test_unknown_material(self):
        with self.assertRaises(NotFoundError):
            services.calculate_costs(FragranceOil, [{'bezeichnung': 'Gibt es nicht', 'amount': 1}])

    def test_empty_list_rejected(self):
        with self.assertRaises(ValidationError):
            services.calculate_costs(FragranceOil, [])

    def test_fragrance_for_weight(self):
        result = services.calculate_fragrance_for_weight(['Öl A'], 120)

        self.assertEqual(result['gesamtTropfen'], 3)
        self.assertEqual(result['gesamtkosten'], Decimal('0.1500'))


class StockOverviewTestCase(TestCase):

    def test_critical_materials_are_listed(self):
        RawSoap.objects.create(
            name='Knapp', purchase_price=Decimal('10.00'),
            quantity=Decimal('500'), minimum_threshold=Decimal('1000')
        )
        RawSoap.objects.create(
            name='Voll', purchase_price=Decimal('10.00'),
            quantity=Decimal('5000'), minimum_threshold=Decimal('1000')
        )

        overview = services.stock_overview(RawSoap)

        self.assertEqual(overview['gesamt'], 2)
        self.assertEqual(overview['kritischerVorrat'], 1)
        self.assertEqual(overview['kritischeMaterialien'][0]['bezeichnung'], 'Knapp')
        # (500 + 5000) g * 0.01 EUR/g
        self.assertEqual(overview['gesamtLagerWert'], Decimal('55.00'))


class InventoryAPITestCase(APITestCase):
    """Test cases for the inventory endpoints."""

    def setUp(self):
        self.admin = make_customer('admin@example.com', role=Customer.Role.ADMIN)
        self.customer = make_customer('kunde@example.com')
        self.soap = RawSoap.objects.create(
            name='Glycerinseife', purchase_price=Decimal('10.00'), quantity=Decimal('100')
        )
        self.oil = FragranceOil.objects.create(
            name='Lavendel', purchase_price=Decimal('15.00'), quantity=Decimal('40')
        )
        self.box = Packaging.objects.create(
            name='Schachtel', purchase_price=Decimal('5.00'), package_quantity=10,
            quantity=Decimal('20')
        )

    def test_public_list_is_enveloped(self):
        response = self.client.get('/api/rohseife/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['data'][0]['name'], 'Glycerinseife')
        self.assertEqual(body['data'][0]['stock_status'], 'ausreichend')

    def test_calculate_is_public(self):
        response = self.client.post(
            '/api/duftoele/calculate/',
            {'materials': [{'bezeichnung': 'Lavendel', 'amount': 10}]},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['gesamtkosten'], Decimal('0.5000'))

    def test_calculate_unknown_material_is_404(self):
        response = self.client.post(
            '/api/rohseife/calculate/',
            {'materials': [{'bezeichnung': 'Unbekannt', 'amount': 10}]},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()['type'], 'NOT_FOUND')

    def test_stock_adjustment_requires_login(self):
        response = self.client.put(
            f'/api/rohseife/{self.soap.pk}/vorrat/',
            {'aktion': 'verbrauch', 'menge': 10},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.json()['success'])

    def test_stock_adjustment_requires_admin(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.put(
            f'/api/rohseife/{self.soap.pk}/vorrat/',
            {'aktion': 'verbrauch', 'menge': 10},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()['type'], 'AUTHORIZATION_ERROR')

    def test_admin_consumes_raw_soap(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(
            f'/api/rohseife/{self.soap.pk}/vorrat/',
            {'aktion': 'verbrauch', 'menge': 30, 'grund': 'Testcharge'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['vorherVorrat'], Decimal('100'))
        self.assertEqual(response.data['data']['neuerVorrat'], Decimal('70'))
        movement = StockMovement.objects.get(stock_item=self.soap)
        self.assertEqual(movement.performed_by, 'admin@example.com')

    def test_admin_consumption_beyond_stock_fails(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.put(
            f'/api/duftoele/{self.oil.pk}/vorrat/',
            {'aktion': 'verbrauch', 'tropfen': 41},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'INSUFFICIENT_STOCK')
        self.oil.refresh_from_db()
        self.assertEqual(self.oil.quantity, Decimal('40'))

    def test_packaging_reduce_and_increase_by_name(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            '/api/verpackungen/vorrat/reduzieren/',
            {'bezeichnung': 'Schachtel', 'anzahl': 5},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.put(
            '/api/verpackungen/vorrat/erhoehen/',
            {'bezeichnung': 'Schachtel', 'anzahl': 15, 'grund': 'Lieferung'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.box.refresh_from_db()
        self.assertEqual(self.box.quantity, Decimal('30'))
        self.assertEqual(self.box.movements.count(), 2)

    def test_delete_raw_soap_is_soft(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f'/api/rohseife/{self.soap.pk}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.soap.refresh_from_db()
        self.assertFalse(self.soap.is_available)

    def test_delete_packaging_is_hard(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f'/api/verpackungen/{self.box.pk}/')

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Packaging.objects.filter(pk=self.box.pk).exists())

    def test_create_requires_admin(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.post(
            '/api/rohseife/',
            {'name': 'Neu', 'purchase_price': '10.00'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_fragrance_oil(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            '/api/duftoele/',
            {'name': 'Vanille', 'purchase_price': '12.00', 'volume_ml': '10', 'scent_family': 'süß'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        oil = FragranceOil.objects.get(name='Vanille')
        self.assertEqual(oil.unit_cost, Decimal('0.06'))

    def test_update_cannot_set_stock(self):
        """
        Given: 100 g raw soap in stock
        When: An admin patches the material with a new quantity
        Then: The request is refused and no stock or movement changes
        """
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(f'/api/rohseife/{self.soap.pk}/', {'quantity': '5'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()['type'], 'VALIDATION_ERROR')
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('100'))
        self.assertEqual(self.soap.movements.count(), 0)

    def test_update_recomputes_unit_cost(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            f'/api/rohseife/{self.soap.pk}/',
            {'purchase_price': '20.00', 'quantity': '100'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.soap.refresh_from_db()
        self.assertEqual(self.soap.unit_cost, Decimal('0.02'))
        self.assertEqual(self.soap.quantity, Decimal('100'))

    def test_update_keeps_concurrent_reservation(self):
        """
        Given: A material loaded for editing
        When: Stock is reserved before the edit is saved
        Then: The edit does not write the old quantity back
        """
        stale = RawSoap.objects.get(pk=self.soap.pk)
        services.reserve(self.soap, '30', reason='Bestellung')

        serializer = RawSoapSerializer(stale, data={'minimum_threshold': '50'}, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        self.soap.refresh_from_db()
        self.assertEqual(self.soap.quantity, Decimal('70'))
        self.assertEqual(self.soap.minimum_threshold, Decimal('50'))

    def test_overview_for_admin(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get('/api/duftoele/stats/overview/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['gesamt'], 1)
        self.assertIn('nach_scent_family', response.data)


class SeedDataCommandTestCase(TestCase):

    def test_seed_is_idempotent(self):
        out = StringIO()
        call_command('seed_data', products=6, stdout=out)
        call_command('seed_data', products=6, stdout=out)

        self.assertEqual(Product.objects.count(), 6)
        self.assertTrue(RawSoap.objects.exists())
        self.assertTrue(Packaging.objects.exists())
        admin = Customer.objects.get(email='admin@example.com')
        self.assertTrue(admin.is_admin)
        self.assertTrue(admin.check_password('admin12345'))
        self.assertIn('Database seeding completed successfully!', out.getvalue())

    def test_clear_removes_products(self):
        call_command('seed_data', products=3, stdout=StringIO())

        call_command('seed_data', products=0, clear=True, stdout=StringIO())

        self.assertEqual(Product.objects.count(), 0)
        self.assertFalse(StockMovement.objects.exists())
