"""
E-mail log API Views (admin only).
"""
import logging

from django.conf import settings
from django.db.models import Count
from rest_framework import generics
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError, ValidationError
from core.permissions import IsAdminRole
from .models import EmailOut
from .dispatcher import enqueue
from .serializers import EmailOutSerializer

logger = logging.getLogger(__name__)


class EmailLogListView(generics.ListAPIView):
    """
    GET: Outbound e-mail log

    Query Parameters:
        - status: pending / sent / failed
        - event_type: e.g. order_confirmation
        - recipient: exact e-mail address
        - reference: order number or inquiry id
    """
    permission_classes = [IsAdminRole]
    serializer_class = EmailOutSerializer

    def get_queryset(self):
        queryset = EmailOut.objects.all()
        params = self.request.query_params

        if params.get('status'):
            queryset = queryset.filter(delivery_status=params['status'])
        if params.get('event_type'):
            queryset = queryset.filter(event_type=params['event_type'])
        if params.get('recipient'):
            queryset = queryset.filter(recipient=params['recipient'].lower())
        if params.get('reference'):
            queryset = queryset.filter(reference=params['reference'])

        return queryset[:500]


class EmailDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = EmailOutSerializer
    queryset = EmailOut.objects.all()


class EmailRetryView(APIView):
    """
    POST: Re-queue a failed e-mail immediately.
    """
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        email = EmailOut.objects.filter(pk=pk).first()
        if email is None:
            raise NotFoundError(f'E-mail {pk} not found')
        if email.delivery_status != EmailOut.DeliveryStatus.FAILED:
            raise ValidationError(f'Only failed e-mails can be retried (status: {email.delivery_status})')

        enqueue(email.pk)
        logger.info(f"E-mail #{email.pk} re-queued by {request.user.email}", extra={'email_id': email.pk})
        email.refresh_from_db()
        return Response({
            'success': True,
            'message': f'E-mail {email.pk} re-queued',
            'data': EmailOutSerializer(email).data
        })


class EmailStatsView(APIView):
    """
    GET: Delivery statistics for the admin dashboard.
    """
    permission_classes = [IsAdminRole]

    def get(self, request):
        by_status = {
            row['delivery_status']: row['count']
            for row in EmailOut.objects.values('delivery_status').annotate(count=Count('id'))
        }
        by_event = {
            row['event_type']: row['count']
            for row in EmailOut.objects.values('event_type').annotate(count=Count('id'))
        }
        total = sum(by_status.values())
        failed = by_status.get(EmailOut.DeliveryStatus.FAILED.value, 0)

        return Response({
            'gesamt': total,
            'nachStatus': by_status,
            'nachTyp': by_event,
            'fehlerquote': round(failed / total * 100, 2) if total else 0.0,
            'endgueltigFehlgeschlagen': EmailOut.objects.filter(
                delivery_status=EmailOut.DeliveryStatus.FAILED,
                attempts__gte=settings.EMAIL_MAX_ATTEMPTS
            ).count(),
        })
