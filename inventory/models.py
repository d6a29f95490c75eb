"""
Inventory Models - Raw materials, stock movements and catalog products.

Models:
    - StockItem: Common stock record (quantity, threshold, unit cost)
    - RawSoap: Raw soap base, stocked in grams (Rohseife)
    - FragranceOil: Fragrance oil, stocked in drops (Duftöl)
    - Packaging: Packaging, stocked in pieces (Verpackung)
    - StockMovement: Append-only audit trail of every stock change
    - Product: Sellable soap and the materials one unit consumes
"""
import math
from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

FOUR_PLACES = Decimal('0.0001')
WHOLE = Decimal('1')

# One drop of fragrance oil per 50 g of soap
GRAMS_PER_DROP = 50


class StockItem(models.Model):
    """
    Stock record shared by all material kinds.

    Quantity never goes below zero: the database enforces it with a check
    constraint and the services only mutate it through conditional updates.
    Critical/low status is derived at read time, never stored.
    """

    class Kind(models.TextChoices):
        RAW_SOAP = 'rohseife', 'Rohseife'
        FRAGRANCE_OIL = 'duftoel', 'Duftöl'
        PACKAGING = 'verpackung', 'Verpackung'

    UNITS = {
        Kind.RAW_SOAP.value: 'g',
        Kind.FRAGRANCE_OIL.value: 'Tropfen',
        Kind.PACKAGING.value: 'Stück',
    }

    kind = models.CharField(max_length=20, choices=Kind.choices, editable=False, db_index=True)
    name = models.CharField(
        max_length=200,
        unique=True,
        help_text="Unique designation (Bezeichnung)"
    )
    description = models.TextField(blank=True, default='')
    supplier = models.CharField(max_length=200, blank=True, default='')
    purchase_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Purchase price of one package in EUR"
    )
    unit_cost = models.DecimalField(
        max_digits=14,
        decimal_places=6,
        default=Decimal('0'),
        editable=False,
        help_text="Derived cost per unit of measure"
    )
    quantity = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Current stock (Vorrat) in the kind's unit"
    )
    minimum_threshold = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Stock at or below this level is critical"
    )
    is_available = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Unavailable materials are hidden from calculations"
    )
    last_restocked_at = models.DateTimeField(null=True, blank=True)
    next_restock_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Stock Item'
        verbose_name_plural = 'Stock Items'
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name='stock_item_quantity_non_negative'
            )
        ]
        indexes = [
            models.Index(fields=['kind', 'is_available']),
        ]

    def __str__(self):
        return f"{self.name}: {self.quantity} {self.unit}"

    def save(self, *args, **kwargs):
        kind = getattr(self, 'KIND', None)
        if kind:
            self.kind = kind
        self.unit_cost = self.compute_unit_cost()
        super().save(*args, **kwargs)

    def compute_unit_cost(self) -> Decimal:
        return self.unit_cost

    @property
    def unit(self) -> str:
        return self.UNITS.get(str(self.kind), '')

    @property
    def whole_units(self) -> bool:
        """Drops and pieces can only move in whole numbers."""
        return self.kind in (self.Kind.FRAGRANCE_OIL, self.Kind.PACKAGING)

    @property
    def is_critical(self) -> bool:
        return self.quantity <= self.minimum_threshold

    @property
    def stock_status(self) -> str:
        if self.quantity <= self.minimum_threshold:
            return 'kritisch'
        if self.quantity <= self.minimum_threshold * 2:
            return 'niedrig'
        return 'ausreichend'

    @property
    def stock_value(self) -> Decimal:
        return (self.quantity * self.unit_cost).quantize(FOUR_PLACES)

    def cost_for(self, amount: Decimal) -> Decimal:
        return (Decimal(amount) * self.unit_cost).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)

    def calculation_details(self, amount: Decimal) -> dict:
        """Kind-specific extras for a cost calculation line."""
        return {}


class RawSoap(StockItem):
    """Raw soap base, bought by the package and stocked in grams."""
    KIND = StockItem.Kind.RAW_SOAP

    package_grams = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('1000'),
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Grams per purchased package"
    )
    colour = models.CharField(max_length=100, blank=True, default='')

    class Meta:
        verbose_name = 'Raw Soap'
        verbose_name_plural = 'Raw Soaps'
        ordering = ['name']

    def compute_unit_cost(self) -> Decimal:
        if not self.package_grams:
            return Decimal('0')
        return Decimal(self.purchase_price) / Decimal(self.package_grams)

    @property
    def cost_per_100g(self) -> Decimal:
        return self.cost_for(Decimal('100'))


class FragranceOil(StockItem):
    """Fragrance oil, bought by the bottle and stocked in drops."""
    KIND = StockItem.Kind.FRAGRANCE_OIL

    class ScentFamily(models.TextChoices):
        FLORAL = 'blumig', 'Blumig'
        FRESH = 'frisch', 'Frisch'
        WOODY = 'holzig', 'Holzig'
        SWEET = 'süß', 'Süß'
        HERBAL = 'kräuterig', 'Kräuterig'
        ORIENTAL = 'orientalisch', 'Orientalisch'
        FRUITY = 'fruchtig', 'Fruchtig'

    class Intensity(models.TextChoices):
        MILD = 'mild', 'Mild'
        MEDIUM = 'mittel', 'Mittel'
        STRONG = 'stark', 'Stark'

    volume_ml = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=Decimal('15'),
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    drops_per_ml = models.PositiveIntegerField(default=20, validators=[MinValueValidator(1)])
    scent_family = models.CharField(
        max_length=20,
        choices=ScentFamily.choices,
        default=ScentFamily.FLORAL,
        db_index=True
    )
    intensity = models.CharField(
        max_length=10,
        choices=Intensity.choices,
        default=Intensity.MEDIUM
    )
    recommended_drops = models.PositiveIntegerField(
        default=5,
        validators=[MinValueValidator(1)],
        help_text="Recommended drops per 100 g of soap"
    )
    maximum_drops = models.PositiveIntegerField(
        default=10,
        validators=[MinValueValidator(1)],
        help_text="Maximum drops per 100 g of soap"
    )
    shelf_life_months = models.PositiveIntegerField(default=24)
    product_link = models.URLField(blank=True, default='')

    class Meta:
        verbose_name = 'Fragrance Oil'
        verbose_name_plural = 'Fragrance Oils'
        ordering = ['name']

    @property
    def total_drops(self) -> Decimal:
        return Decimal(self.volume_ml) * self.drops_per_ml

    def compute_unit_cost(self) -> Decimal:
        if not self.total_drops:
            return Decimal('0')
        return Decimal(self.purchase_price) / self.total_drops

    @staticmethod
    def drops_for_weight(soap_grams) -> int:
        """Dosage rule, rounded up to whole drops. Cost estimation only."""
        return math.ceil(Decimal(soap_grams) / GRAMS_PER_DROP)

    def cost_for_weight(self, soap_grams) -> Decimal:
        return self.cost_for(Decimal(self.drops_for_weight(soap_grams)))

    def dosage_verdict(self, drops) -> str:
        if drops <= self.recommended_drops:
            return 'optimal'
        if drops <= self.maximum_drops:
            return 'stark'
        return 'zu_stark'

    @property
    def available_portions(self) -> int:
        return int(self.quantity // self.recommended_drops)

    def calculation_details(self, amount: Decimal) -> dict:
        return {
            'empfehlungStatus': self.dosage_verdict(amount),
            'empfehlungProSeife': self.recommended_drops,
            'maximalProSeife': self.maximum_drops,
            'duftrichtung': self.scent_family,
            'intensitaet': self.intensity,
        }


class Packaging(StockItem):
    """Packaging, bought in bulk and stocked in pieces."""
    KIND = StockItem.Kind.PACKAGING

    class Form(models.TextChoices):
        SQUARE = 'viereck', 'Viereck'
        OBLONG = 'länglich', 'Länglich'
        BAG = 'tüte', 'Tüte'
        TIN = 'dose', 'Dose'
        BOX = 'schachtel', 'Schachtel'
        POUCH = 'beutel', 'Beutel'
        OTHER = 'sonstiges', 'Sonstiges'

    class Material(models.TextChoices):
        CARDBOARD = 'karton', 'Karton'
        PLASTIC = 'plastik', 'Plastik'
        PAPER = 'papier', 'Papier'
        GLASS = 'glas', 'Glas'
        METAL = 'metall', 'Metall'
        FABRIC = 'stoff', 'Stoff'
        OTHER = 'sonstiges', 'Sonstiges'

    package_quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Pieces per purchased package"
    )
    form = models.CharField(max_length=20, choices=Form.choices, default=Form.OTHER, db_index=True)
    material = models.CharField(max_length=20, choices=Material.choices, default=Material.OTHER)
    size = models.CharField(max_length=50, blank=True, default='', help_text='e.g. "9x13" or "100g"')
    colour = models.CharField(max_length=100, blank=True, default='')
    storage_location = models.CharField(max_length=200, blank=True, default='')
    order_code = models.CharField(max_length=100, blank=True, default='')
    max_weight_grams = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = 'Packaging'
        verbose_name_plural = 'Packaging'
        ordering = ['name']

    def save(self, *args, **kwargs):
        if self.form == self.Form.OTHER:
            self.form = self._form_from_name()
        super().save(*args, **kwargs)

    def _form_from_name(self) -> str:
        lowered = self.name.lower()
        for form in (self.Form.SQUARE, self.Form.OBLONG, self.Form.BAG, self.Form.TIN, self.Form.BOX):
            if form.value in lowered:
                return form
        return self.Form.OTHER

    def compute_unit_cost(self) -> Decimal:
        if not self.package_quantity:
            return Decimal('0')
        return (Decimal(self.purchase_price) / self.package_quantity).quantize(FOUR_PLACES)

    @property
    def stock_status(self) -> str:
        if self.quantity <= 0:
            return 'leer'
        return super().stock_status

    def calculation_details(self, amount: Decimal) -> dict:
        return {
            'form': self.form,
            'groesse': self.size,
            'material': self.material,
            'vorratStatus': self.stock_status,
        }


class StockMovement(models.Model):
    """
    Audit trail entry for a single stock change (Lagerbewegung).

    Rows are only ever created. The stock item reference is nulled if a
    packaging record is hard-deleted; the name snapshot stays.
    """

    class Direction(models.TextChoices):
        IN = 'eingang', 'Eingang'
        OUT = 'ausgang', 'Ausgang'

    stock_item = models.ForeignKey(
        StockItem,
        on_delete=models.SET_NULL,
        null=True,
        related_name='movements'
    )
    item_name = models.CharField(max_length=200)
    kind = models.CharField(max_length=20, choices=StockItem.Kind.choices)
    direction = models.CharField(max_length=10, choices=Direction.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    unit = models.CharField(max_length=20)
    quantity_before = models.DecimalField(max_digits=12, decimal_places=2)
    quantity_after = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.CharField(max_length=300, blank=True, default='')
    reference = models.CharField(
        max_length=50,
        blank=True,
        default='',
        db_index=True,
        help_text="e.g. order number"
    )
    performed_by = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Stock Movement'
        verbose_name_plural = 'Stock Movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['stock_item', 'created_at']),
        ]

    def __str__(self):
        sign = '+' if self.direction == self.Direction.IN else '-'
        return f"{self.item_name} {sign}{self.amount} {self.unit}"


class Product(models.Model):
    """
    Sellable soap (portfolio item).

    One unit consumes ``weight_grams`` of raw soap (optionally split between
    two soaps) and one piece of packaging. Fragrance oil is dosed by the
    50 g rule for cost estimation only and is not reserved on confirmation.
    """
    name = models.CharField(max_length=200, unique=True, db_index=True)
    description = models.TextField(blank=True, default='')
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Gross sales price per unit"
    )
    weight_grams = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('1'))]
    )
    raw_soap = models.ForeignKey(
        RawSoap,
        on_delete=models.PROTECT,
        related_name='products'
    )
    second_raw_soap = models.ForeignKey(
        RawSoap,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='secondary_products'
    )
    second_soap_percent = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
        help_text="Share of the weight taken from the second raw soap"
    )
    fragrance_oil = models.ForeignKey(
        FragranceOil,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    packaging = models.ForeignKey(
        Packaging,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.price} EUR)"

    @property
    def uses_two_soaps(self) -> bool:
        return self.second_raw_soap_id is not None and self.second_soap_percent > 0

    def materials_for(self, units: int) -> list:
        """
        Stock consumed by ``units`` sold products as ``[(stock_item, amount)]``.

        Two-soap products split the total weight by percentage; the second
        share takes the remainder so no gram is lost to rounding.
        """
        total_grams = Decimal(self.weight_grams) * units
        materials = []
        if self.uses_two_soaps:
            second = (total_grams * self.second_soap_percent / 100).quantize(WHOLE, rounding=ROUND_HALF_UP)
            materials.append((self.raw_soap, total_grams - second))
            materials.append((self.second_raw_soap, second))
        else:
            materials.append((self.raw_soap, total_grams))
        if self.packaging_id:
            materials.append((self.packaging, Decimal(units)))
        return materials

    def material_cost(self) -> Decimal:
        """Estimated material cost of one unit, fragrance included."""
        total = sum((item.cost_for(amount) for item, amount in self.materials_for(1)), Decimal('0'))
        if self.fragrance_oil_id:
            total += self.fragrance_oil.cost_for_weight(self.weight_grams)
        return total.quantize(FOUR_PLACES)
