"""
Service health endpoint.
"""
import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for container orchestration.

    Reports ``degraded`` with 503 when the database cannot be reached so the
    orchestrator stops routing traffic instead of the API serving stale data.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        database = 'ok'
    except DatabaseError as e:
        logger.error(f"Health check: database unreachable: {e}")
        database = 'unavailable'

    healthy = database == 'ok'
    return JsonResponse(
        {
            'status': 'healthy' if healthy else 'degraded',
            'service': 'soapshop-api',
            'database': database,
        },
        status=200 if healthy else 503,
    )
