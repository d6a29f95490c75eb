"""
Inquiry API Views.

Implements:
- POST /inquiries/ - Create an inquiry (customer)
- GET /inquiries/ - List inquiries (admin)
- GET /inquiries/mine/ - Own inquiries
- GET /inquiries/{id}/ - Detail (admin or owner)
- POST /inquiries/{id}/accept/ and /reject/ - Answer (admin)
- POST /inquiries/{id}/pay/ - Pay an accepted inquiry (owner)
- GET /inquiries/stats/ - Counts per status (admin)
"""
import logging

from django.db.models import Count, Q, Sum
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import AuthorizationError
from core.permissions import IsAdminRole
from orders.serializers import OrderSerializer
from . import services
from .models import Inquiry
from .serializers import (
    InquiryAnswerSerializer,
    InquiryCreateSerializer,
    InquiryPaymentSerializer,
    InquirySerializer,
)

logger = logging.getLogger(__name__)


class InquiryListCreateView(generics.ListCreateAPIView):
    """
    GET: List all inquiries (admin)
    POST: Create an inquiry (logged-in customer)

    Query Parameters (GET):
        - status: pending / accepted / rejected / converted_to_order
    """
    serializer_class = InquirySerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated()]
        return [IsAdminRole()]

    def get_queryset(self):
        queryset = Inquiry.objects.select_related('customer', 'order').prefetch_related('items')
        status_filter = self.request.query_params.get('status')
        if status_filter in Inquiry.Status.values:
            queryset = queryset.filter(status=status_filter)
        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = InquiryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        items = data.pop('items')

        inquiry = services.create_inquiry(request.user, items, data)
        return Response(
            {
                'success': True,
                'message': f'Inquiry {inquiry.inquiry_id} submitted',
                'data': InquirySerializer(inquiry).data
            },
            status=status.HTTP_201_CREATED
        )


class MyInquiriesView(generics.ListAPIView):
    serializer_class = InquirySerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Inquiry.objects.filter(customer=self.request.user).select_related(
            'customer', 'order'
        ).prefetch_related('items').order_by('-created_at')


class InquiryDetailView(generics.RetrieveAPIView):
    serializer_class = InquirySerializer
    permission_classes = [IsAuthenticated]
    queryset = Inquiry.objects.select_related('customer', 'order').prefetch_related('items')

    def get_object(self):
        inquiry = super().get_object()
        user = self.request.user
        if not user.is_admin and inquiry.customer_id != user.pk:
            raise AuthorizationError('You can only view your own inquiries')
        return inquiry


class InquiryAnswerView(APIView):
    """
    POST: Accept or reject a pending inquiry (admin).

    Request Body: {"adminNote": "optional message to the customer"}
    """
    permission_classes = [IsAdminRole]
    answer = None

    def post(self, request, pk):
        serializer = InquiryAnswerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        inquiry = self.answer(
            pk,
            admin_note=serializer.validated_data['adminNote'],
            responded_by=request.user.email
        )
        return Response({
            'success': True,
            'message': f'Inquiry {inquiry.inquiry_id} {inquiry.get_status_display().lower()}',
            'data': InquirySerializer(inquiry).data
        })


class InquiryAcceptView(InquiryAnswerView):
    answer = staticmethod(services.accept_inquiry)


class InquiryRejectView(InquiryAnswerView):
    answer = staticmethod(services.reject_inquiry)


class InquiryPayView(APIView):
    """
    POST: Pay an accepted inquiry. Creates an order in status 'bezahlt'.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        serializer = InquiryPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = services.pay_inquiry(
            pk,
            request.user,
            transaction_id=serializer.validated_data['transaction_id'],
            payment_method=serializer.validated_data['payment_method']
        )
        return Response(
            {
                'success': True,
                'message': f'Payment received, order {order.order_number} created',
                'data': OrderSerializer(order).data
            },
            status=status.HTTP_201_CREATED
        )


class InquiryStatsView(APIView):
    """
    GET: Inquiry counts per status and total requested value (admin).
    """
    permission_classes = [IsAdminRole]

    def get(self, request):
        stats = Inquiry.objects.aggregate(
            total_inquiries=Count('id'),
            pending=Count('id', filter=Q(status=Inquiry.Status.PENDING)),
            accepted=Count('id', filter=Q(status=Inquiry.Status.ACCEPTED)),
            rejected=Count('id', filter=Q(status=Inquiry.Status.REJECTED)),
            converted=Count('id', filter=Q(status=Inquiry.Status.CONVERTED)),
            total_value=Sum('total'),
        )
        stats['total_value'] = str(stats['total_value'] or '0.00')
        return Response(stats)
