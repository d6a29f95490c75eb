"""
Management command to seed the database with sample data.

Generates:
- Raw soap bases, fragrance oils and packaging with realistic stock
- Products combining them
- One admin account

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from customers.models import Customer
from inventory.models import FragranceOil, Packaging, Product, RawSoap, StockItem, StockMovement

RAW_SOAPS = [
    # name, price per package, grams per package, colour
    ('Glycerinseife klar', '12.90', 1000, 'transparent'),
    ('Glycerinseife weiß', '12.90', 1000, 'weiß'),
    ('Sheabutter Seife', '18.50', 1000, 'creme'),
    ('Ziegenmilch Seife', '21.00', 1000, 'elfenbein'),
    ('Aloe Vera Seife', '16.40', 1000, 'grünlich'),
    ('Honig Seife', '19.90', 1000, 'honiggelb'),
]

FRAGRANCE_OILS = [
    # name, price per bottle, ml, scent family, intensity
    ('Lavendel', '6.90', 15, FragranceOil.ScentFamily.FLORAL, FragranceOil.Intensity.MEDIUM),
    ('Rose', '8.50', 15, FragranceOil.ScentFamily.FLORAL, FragranceOil.Intensity.STRONG),
    ('Zitrone', '5.90', 15, FragranceOil.ScentFamily.FRESH, FragranceOil.Intensity.MILD),
    ('Sandelholz', '9.90', 10, FragranceOil.ScentFamily.WOODY, FragranceOil.Intensity.STRONG),
    ('Vanille', '7.40', 15, FragranceOil.ScentFamily.SWEET, FragranceOil.Intensity.MEDIUM),
    ('Rosmarin', '6.20', 10, FragranceOil.ScentFamily.HERBAL, FragranceOil.Intensity.MILD),
    ('Amber', '10.90', 10, FragranceOil.ScentFamily.ORIENTAL, FragranceOil.Intensity.STRONG),
    ('Pfirsich', '6.90', 15, FragranceOil.ScentFamily.FRUITY, FragranceOil.Intensity.MEDIUM),
]

PACKAGING = [
    # name, price per package, pieces, material, size
    ('Schachtel Kraft 100g', '14.90', 50, Packaging.Material.CARDBOARD, '9x6'),
    ('Länglich Box weiß', '17.50', 50, Packaging.Material.CARDBOARD, '12x5'),
    ('Tüte Zellophan', '4.90', 100, Packaging.Material.PLASTIC, '10x15'),
    ('Dose Metall rund', '22.00', 20, Packaging.Material.METAL, '8cm'),
    ('Beutel Leinen', '19.90', 25, Packaging.Material.FABRIC, '10x12'),
]


class Command(BaseCommand):
    help = 'Seed the database with sample materials, products and an admin account'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing inventory data before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=12,
            help='Number of products to create (default: 12)',
        )
        parser.add_argument(
            '--admin-email',
            default='admin@example.com',
            help='E-mail of the seeded admin account',
        )
        parser.add_argument(
            '--admin-password',
            default='admin12345',
            help='Password of the seeded admin account',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            soaps = self._create_raw_soaps()
            oils = self._create_fragrance_oils()
            packaging = self._create_packaging()
            self._create_products(options['products'], soaps, oils, packaging)
            self._create_admin(options['admin_email'], options['admin_password'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear inventory data. Orders are kept."""
        from orders.models import StockReservation

        if StockReservation.objects.exists():
            self.stdout.write(self.style.ERROR('Open reservations exist, not clearing.'))
            return
        Product.objects.all().delete()
        StockMovement.objects.all().delete()
        StockItem.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing inventory data cleared.'))

    def _create_raw_soaps(self):
        soaps = []
        for name, price, grams, colour in RAW_SOAPS:
            soap, created = RawSoap.objects.get_or_create(
                name=name,
                defaults={
                    'purchase_price': Decimal(price),
                    'package_grams': Decimal(grams),
                    'colour': colour,
                    'supplier': 'Seifenbasis GmbH',
                    'quantity': Decimal(random.randint(0, 8) * 500),
                    'minimum_threshold': Decimal('1000'),
                }
            )
            soaps.append(soap)
            if created:
                self.stdout.write(f'  Created raw soap: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(soaps)} raw soaps'))
        return soaps

    def _create_fragrance_oils(self):
        oils = []
        for name, price, ml, scent_family, intensity in FRAGRANCE_OILS:
            oil, created = FragranceOil.objects.get_or_create(
                name=name,
                defaults={
                    'purchase_price': Decimal(price),
                    'volume_ml': Decimal(ml),
                    'scent_family': scent_family,
                    'intensity': intensity,
                    'supplier': 'Duftmanufaktur',
                    'quantity': Decimal(random.randint(50, 600)),
                    'minimum_threshold': Decimal('100'),
                }
            )
            oils.append(oil)
            if created:
                self.stdout.write(f'  Created fragrance oil: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(oils)} fragrance oils'))
        return oils

    def _create_packaging(self):
        packaging = []
        for name, price, pieces, material, size in PACKAGING:
            item, created = Packaging.objects.get_or_create(
                name=name,
                defaults={
                    'purchase_price': Decimal(price),
                    'package_quantity': pieces,
                    'material': material,
                    'size': size,
                    'quantity': Decimal(random.randint(0, 120)),
                    'minimum_threshold': Decimal('20'),
                }
            )
            packaging.append(item)
            if created:
                self.stdout.write(f'  Created packaging: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(packaging)} packaging records'))
        return packaging

    def _create_products(self, count, soaps, oils, packaging):
        """Create products; roughly every third one uses two soaps."""
        created_count = 0
        for i in range(count):
            soap = random.choice(soaps)
            oil = random.choice(oils)
            name = f"{oil.name} {soap.name.split()[0]} {i + 1}"

            second_soap = None
            percent = 0
            if i % 3 == 0:
                second_soap = random.choice([s for s in soaps if s.pk != soap.pk])
                percent = random.choice([20, 30, 40, 50])

            _, created = Product.objects.get_or_create(
                name=name,
                defaults={
                    'description': f"Handgemachte Seife mit {oil.name}-Duft.",
                    'price': Decimal(random.choice(['4.90', '5.90', '6.50', '7.90', '8.90'])),
                    'weight_grams': Decimal(random.choice([80, 100, 120])),
                    'raw_soap': soap,
                    'second_raw_soap': second_soap,
                    'second_soap_percent': percent,
                    'fragrance_oil': oil,
                    'packaging': random.choice(packaging),
                }
            )
            created_count += int(created)

        self.stdout.write(self.style.SUCCESS(f'Created {created_count} products'))

    def _create_admin(self, email, password):
        admin, created = Customer.objects.get_or_create(
            email=email.lower(),
            defaults={
                'first_name': 'Shop',
                'last_name': 'Admin',
                'role': Customer.Role.ADMIN,
            }
        )
        if created:
            admin.set_password(password)
            admin.save()
            self.stdout.write(self.style.SUCCESS(f'Created admin account {email}'))
