"""
Inventory Service Layer - stock reservation, restocking, cost calculation
and dashboard statistics.

Stock changes never read-then-write. ``reserve`` is a single conditional
UPDATE (``quantity >= amount``), so two concurrent confirmations can never
drive a stock record below zero.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Avg, Count, DecimalField, ExpressionWrapper, F, Sum
from django.utils import timezone

from core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from .models import FOUR_PLACES, FragranceOil, StockItem, StockMovement

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')

ACTION_CONSUME = 'verbrauch'
ACTION_RESTOCK = 'nachbestellung'
STOCK_ACTIONS = (ACTION_CONSUME, ACTION_RESTOCK)


def parse_amount(value, field: str = 'amount') -> Decimal:
    """Convert request input into a positive Decimal or raise ValidationError."""
    if isinstance(value, bool) or value in (None, ''):
        raise ValidationError(f"'{field}' is required", field=field)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"'{field}' must be a number", field=field)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"'{field}' must be greater than zero", field=field)
    return amount


def _check_units(item: StockItem, amount: Decimal) -> None:
    if item.whole_units and amount != amount.to_integral_value():
        raise ValidationError(
            f"{item.name} is counted in whole {item.unit}, got {amount}",
            field='amount'
        )


def _record_movement(item, direction, amount, reason, reference, performed_by) -> StockMovement:
    if direction == StockMovement.Direction.OUT:
        before = item.quantity + amount
    else:
        before = item.quantity - amount
    return StockMovement.objects.create(
        stock_item_id=item.pk,
        item_name=item.name,
        kind=item.kind,
        direction=direction,
        amount=amount,
        unit=item.unit,
        quantity_before=before,
        quantity_after=item.quantity,
        reason=reason[:300],
        reference=reference,
        performed_by=performed_by,
    )


def reserve(item: StockItem, amount, reason: str = '', reference: str = '',
            performed_by: str = '') -> StockMovement:
    """
    Take ``amount`` out of stock.

    Atomically checks ``amount <= quantity`` and decrements in the same
    statement. On failure nothing is changed and InsufficientStockError is
    raised with the current quantity.
    """
    amount = parse_amount(amount)
    _check_units(item, amount)

    with transaction.atomic():
        updated = StockItem.objects.filter(pk=item.pk, quantity__gte=amount).update(
            quantity=F('quantity') - amount,
            updated_at=timezone.now()
        )
        item.refresh_from_db(fields=['quantity'])
        if not updated:
            logger.warning(
                f"Reservation refused for {item.name}: requested {amount}, available {item.quantity}"
            )
            raise InsufficientStockError(item.name, amount, item.quantity)

        movement = _record_movement(
            item, StockMovement.Direction.OUT, amount, reason, reference, performed_by
        )

    logger.info(
        f"Reserved {amount} {item.unit} of {item.name} ({reason or 'no reason given'}), "
        f"remaining stock: {item.quantity}"
    )
    return movement


def restock(item: StockItem, amount, reason: str = '', reference: str = '',
            performed_by: str = '') -> StockMovement:
    """Put ``amount`` back into stock and stamp ``last_restocked_at``. Always succeeds."""
    amount = parse_amount(amount)
    _check_units(item, amount)
    now = timezone.now()

    with transaction.atomic():
        StockItem.objects.filter(pk=item.pk).update(
            quantity=F('quantity') + amount,
            last_restocked_at=now,
            updated_at=now
        )
        item.refresh_from_db(fields=['quantity', 'last_restocked_at'])
        movement = _record_movement(
            item, StockMovement.Direction.IN, amount, reason, reference, performed_by
        )

    logger.info(
        f"Restocked {amount} {item.unit} of {item.name} ({reason or 'no reason given'}), "
        f"new stock: {item.quantity}"
    )
    return movement


def adjust_stock(item: StockItem, action: str, amount, reason: str = '',
                 performed_by: str = '') -> Dict:
    """
    Manual stock correction from the admin area.

    Args:
        action: 'verbrauch' (consume) or 'nachbestellung' (restock)

    Returns:
        Dict with quantity before/after and the derived stock status
    """
    if action not in STOCK_ACTIONS:
        raise ValidationError(
            f"'aktion' must be one of: {', '.join(STOCK_ACTIONS)}",
            field='aktion'
        )

    if action == ACTION_CONSUME:
        movement = reserve(item, amount, reason=reason, performed_by=performed_by)
    else:
        movement = restock(item, amount, reason=reason, performed_by=performed_by)

    return {
        'id': item.pk,
        'bezeichnung': item.name,
        'einheit': item.unit,
        'vorherVorrat': movement.quantity_before,
        'neuerVorrat': movement.quantity_after,
        'vorratStatus': item.stock_status,
        'letzteBeschaffung': item.last_restocked_at,
    }


def calculate_costs(model, lines) -> Dict:
    """
    Itemised material cost for ``[{bezeichnung, amount}]``.

    Line cost is ``amount * unit_cost`` at four decimal places; the total is
    the sum of line costs. Stock shortfalls are reported per line and never
    fail the calculation. Nothing is mutated.
    """
    if not isinstance(lines, list) or not lines:
        raise ValidationError("'materials' must be a non-empty list", field='materials')

    rows = []
    total = Decimal('0')
    for idx, line in enumerate(lines):
        if not isinstance(line, dict) or not line.get('bezeichnung'):
            raise ValidationError(f"Item {idx}: missing 'bezeichnung'", field='materials')
        name = line['bezeichnung']
        amount = parse_amount(line.get('amount'), field=f'materials[{idx}].amount')

        item = model.objects.filter(name=name, is_available=True).first()
        if item is None:
            raise NotFoundError(f'{model._meta.verbose_name} "{name}" not found')

        cost = item.cost_for(amount)
        total += cost
        row = {
            'bezeichnung': item.name,
            'amount': amount,
            'einheit': item.unit,
            'kostenProEinheit': item.unit_cost.quantize(Decimal('0.000001')),
            'kosten': cost,
            'verfuegbar': item.quantity,
            'ausreichend': item.quantity >= amount,
        }
        row.update(item.calculation_details(amount))
        rows.append(row)

    total = total.quantize(FOUR_PLACES)
    return {
        'berechnungen': rows,
        'gesamtkosten': total,
        'gesamtkostenAnzeige': total.quantize(TWO_PLACES),
        'waehrung': 'EUR',
    }


def calculate_fragrance_for_weight(names: List[str], soap_grams) -> Dict:
    """
    Drops and cost per fragrance oil for a soap of ``soap_grams``
    (one drop per 50 g, rounded up).
    """
    soap_grams = parse_amount(soap_grams, field='seifengewicht')
    if not isinstance(names, list) or not names:
        raise ValidationError("'duftoele' must be a non-empty list", field='duftoele')

    rows = []
    total_cost = Decimal('0')
    total_drops = 0
    for name in names:
        oil = FragranceOil.objects.filter(name=name, is_available=True).first()
        if oil is None:
            raise NotFoundError(f'Fragrance oil "{name}" not found')
        drops = oil.drops_for_weight(soap_grams)
        cost = oil.cost_for(Decimal(drops))
        total_cost += cost
        total_drops += drops
        rows.append({
            'bezeichnung': oil.name,
            'benoetigteTropfen': drops,
            'kosten': cost,
            'verfuegbareTropfen': oil.quantity,
            'ausreichend': oil.quantity >= drops,
            'duftrichtung': oil.scent_family,
            'intensitaet': oil.intensity,
        })

    average = (total_cost / total_drops).quantize(Decimal('0.000001')) if total_drops else Decimal('0')
    return {
        'seifengewicht': soap_grams,
        'dosierungsregel': '1 Tropfen pro 50g Seife',
        'berechnungen': rows,
        'gesamtTropfen': total_drops,
        'gesamtkosten': total_cost.quantize(FOUR_PLACES),
        'durchschnittKostenProTropfen': average,
    }


def _group_counts(queryset, field: str) -> List[Dict]:
    return [
        {'wert': row[field], 'anzahl': row['count']}
        for row in queryset.values(field).annotate(count=Count('pk')).order_by('-count', field)
    ]


def stock_overview(model, group_by: Optional[List[str]] = None) -> Dict:
    """
    Dashboard statistics for one material kind.

    Critical status (``quantity <= minimum_threshold``) is recomputed on
    every call.
    """
    queryset = model.objects.all()
    value_expression = ExpressionWrapper(
        F('quantity') * F('unit_cost'),
        output_field=DecimalField(max_digits=24, decimal_places=8)
    )
    aggregates = queryset.aggregate(
        total=Count('pk'),
        total_value=Sum(value_expression),
        average_unit_cost=Avg('unit_cost'),
    )

    critical = queryset.filter(quantity__lte=F('minimum_threshold')).order_by('name')
    status_counts: Dict[str, int] = {}
    for item in queryset.filter(is_available=True):
        status_counts[item.stock_status] = status_counts.get(item.stock_status, 0) + 1

    overview = {
        'gesamt': aggregates['total'],
        'verfuegbar': queryset.filter(is_available=True).count(),
        'kritischerVorrat': critical.count(),
        'kritischeMaterialien': [
            {
                'id': item.pk,
                'bezeichnung': item.name,
                'vorrat': item.quantity,
                'mindestbestand': item.minimum_threshold,
                'einheit': item.unit,
            }
            for item in critical
        ],
        'vorratStatus': status_counts,
        'gesamtLagerWert': Decimal(aggregates['total_value'] or 0).quantize(TWO_PLACES),
        'durchschnittKostenProEinheit': Decimal(aggregates['average_unit_cost'] or 0).quantize(
            Decimal('0.000001')
        ),
    }
    for field in group_by or []:
        overview[f'nach_{field}'] = _group_counts(queryset, field)
    return overview
