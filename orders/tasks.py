"""
Celery tasks for order processing.

Tasks:
    - generate_daily_order_report: Orders, revenue and critical stock of the previous day (Celery Beat)
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def generate_daily_order_report():
    """
    Summarise yesterday's orders and list materials at or below their
    minimum threshold.

    Scheduled via Celery Beat for daily execution.
    """
    from inventory.models import StockItem
    from orders.models import Order

    yesterday = timezone.localdate() - timedelta(days=1)
    orders = Order.objects.filter(created_at__date=yesterday)

    stats = orders.aggregate(
        total_orders=Count('id'),
        from_inquiries=Count('id', filter=Q(source=Order.Source.INQUIRY)),
        cancelled_orders=Count('id', filter=Q(status=Order.Status.CANCELLED)),
        rejected_orders=Count('id', filter=Q(status=Order.Status.REJECTED)),
        total_revenue=Sum('grand_total', filter=Q(status__in=Order.REVENUE_STATUSES))
    )
    stats['total_revenue'] = str(stats['total_revenue'] or '0.00')
    stats['date'] = yesterday.isoformat()
    stats['critical_stock'] = list(
        StockItem.objects.filter(is_available=True, quantity__lte=F('minimum_threshold'))
        .order_by('kind', 'name')
        .values_list('name', flat=True)
    )

    report = f"""
    ===============================================
    DAILY ORDER REPORT - {yesterday}
    ===============================================
    Orders: {stats['total_orders']} ({stats['from_inquiries']} from inquiries)
    Cancelled: {stats['cancelled_orders']}
    Rejected: {stats['rejected_orders']}
    Revenue: {stats['total_revenue']} EUR
    Critical stock: {', '.join(stats['critical_stock']) or '-'}
    ===============================================
    """

    logger.info(report)

    return stats
