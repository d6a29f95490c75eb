"""
Inventory API Views.

Implements:
- CRUD for raw soap, fragrance oils, packaging and products
- Cost calculation with rate limiting
- Manual stock adjustment (verbrauch / nachbestellung)
- Dashboard statistics per material kind
"""
import logging

from django.db.models import F, ProtectedError, Q
from rest_framework import generics
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError, ValidationError
from core.permissions import IsAdminOrReadOnly, IsAdminRole
from core.rate_limiting import rate_limit
from . import services
from .models import FragranceOil, Packaging, Product, RawSoap, StockMovement
from .serializers import (
    FragranceOilSerializer,
    PackagingSerializer,
    ProductSerializer,
    RawSoapSerializer,
    StockMovementSerializer,
)

logger = logging.getLogger(__name__)


def _actor(request) -> str:
    return getattr(request.user, 'email', '') or 'system'


# =============================================================================
# Material CRUD
# =============================================================================

class StockItemListCreateView(generics.ListCreateAPIView):
    """
    GET: List materials of one kind
    POST: Create a material (admin)

    Query Parameters:
        - q: Search in name, description and supplier
        - available: 'true' / 'false'
        - critical: 'true' for stock at or below the minimum threshold
    """
    permission_classes = [IsAdminOrReadOnly]
    model = None

    def get_queryset(self):
        queryset = self.model.objects.all()

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(description__icontains=keyword) |
                Q(supplier__icontains=keyword)
            )

        available = self.request.query_params.get('available', '').lower()
        if available in ('true', 'false'):
            queryset = queryset.filter(is_available=(available == 'true'))

        if self.request.query_params.get('critical', '').lower() == 'true':
            queryset = queryset.filter(quantity__lte=F('minimum_threshold'))

        return queryset.order_by('name')

    def perform_create(self, serializer):
        item = serializer.save()
        logger.info(f"{item.kind} '{item.name}' created by {_actor(self.request)}")


class StockItemDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a material
    PUT/PATCH: Update a material (admin)
    DELETE: Deactivate a material (admin)
    """
    permission_classes = [IsAdminOrReadOnly]
    model = None

    def get_queryset(self):
        return self.model.objects.all()

    def perform_destroy(self, instance):
        # Raw soap and oils stay referenced by products and movements
        instance.is_available = False
        instance.save(update_fields=['is_available', 'updated_at'])
        logger.info(f"{instance.kind} '{instance.name}' deactivated by {_actor(self.request)}")


class RawSoapListCreateView(StockItemListCreateView):
    model = RawSoap
    serializer_class = RawSoapSerializer


class RawSoapDetailView(StockItemDetailView):
    model = RawSoap
    serializer_class = RawSoapSerializer


class FragranceOilListCreateView(StockItemListCreateView):
    model = FragranceOil
    serializer_class = FragranceOilSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        scent_family = self.request.query_params.get('duftrichtung')
        if scent_family:
            queryset = queryset.filter(scent_family=scent_family)
        intensity = self.request.query_params.get('intensitaet')
        if intensity:
            queryset = queryset.filter(intensity=intensity)
        return queryset


class FragranceOilDetailView(StockItemDetailView):
    model = FragranceOil
    serializer_class = FragranceOilSerializer


class PackagingListCreateView(StockItemListCreateView):
    model = Packaging
    serializer_class = PackagingSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        form = self.request.query_params.get('form')
        if form:
            queryset = queryset.filter(form=form)
        return queryset


class PackagingDetailView(StockItemDetailView):
    """
    GET: Retrieve a packaging record
    PUT/PATCH: Update a packaging record (admin)
    DELETE: Delete a packaging record (admin)

    Packaging still held by an order reservation cannot be deleted.
    """
    model = Packaging
    serializer_class = PackagingSerializer

    def perform_destroy(self, instance):
        name = instance.name
        try:
            instance.delete()
        except ProtectedError:
            raise ValidationError(
                f'Packaging "{name}" is reserved by open orders and cannot be deleted'
            )
        logger.info(f"Packaging '{name}' deleted by {_actor(self.request)}")


# =============================================================================
# Cost Calculation
# =============================================================================

class CostCalculationView(APIView):
    """
    POST: Itemised material cost for ``{materials: [{bezeichnung, amount}]}``.

    Public. Rate limited to 30 requests per minute.
    """
    model = None

    @rate_limit(max_requests=30, window_seconds=60)
    def post(self, request):
        result = services.calculate_costs(self.model, request.data.get('materials'))
        return Response(result)


class RawSoapCalculationView(CostCalculationView):
    model = RawSoap


class FragranceOilCalculationView(CostCalculationView):
    model = FragranceOil


class PackagingCalculationView(CostCalculationView):
    model = Packaging


class FragranceByWeightView(APIView):
    """
    POST: Drops and cost per fragrance oil for a given soap weight.

    Body: ``{duftoele: [bezeichnung, ...], seifengewicht: grams}``
    """

    @rate_limit(max_requests=30, window_seconds=60)
    def post(self, request):
        result = services.calculate_fragrance_for_weight(
            request.data.get('duftoele'),
            request.data.get('seifengewicht')
        )
        return Response(result)


# =============================================================================
# Stock Adjustment
# =============================================================================

class StockAdjustView(APIView):
    """
    PUT: Consume or restock a material by id.

    Body: ``{aktion: 'verbrauch'|'nachbestellung', <amount_field>: n, grund}``
    """
    permission_classes = [IsAdminRole]
    model = None
    amount_field = 'menge'

    def put(self, request, pk):
        item = self.model.objects.filter(pk=pk).first()
        if item is None:
            raise NotFoundError(f'{self.model._meta.verbose_name} {pk} not found')

        result = services.adjust_stock(
            item,
            request.data.get('aktion'),
            request.data.get(self.amount_field),
            reason=request.data.get('grund', ''),
            performed_by=_actor(request)
        )
        return Response({
            'success': True,
            'message': f"Stock of {item.name} updated",
            'data': result
        })


class RawSoapStockView(StockAdjustView):
    model = RawSoap
    amount_field = 'menge'


class FragranceOilStockView(StockAdjustView):
    model = FragranceOil
    amount_field = 'tropfen'


class PackagingStockView(APIView):
    """
    PUT/POST: Reduce or increase packaging stock by name.

    Body: ``{bezeichnung, anzahl, grund}``
    """
    permission_classes = [IsAdminRole]
    stock_action = None

    def put(self, request):
        name = request.data.get('bezeichnung')
        if not name:
            raise ValidationError("'bezeichnung' is required", field='bezeichnung')
        item = Packaging.objects.filter(name=name).first()
        if item is None:
            raise NotFoundError(f'Packaging "{name}" not found')

        result = services.adjust_stock(
            item,
            self.stock_action,
            request.data.get('anzahl'),
            reason=request.data.get('grund', ''),
            performed_by=_actor(request)
        )
        return Response({
            'success': True,
            'message': f"Stock of {item.name} updated",
            'data': result
        })

    post = put


class PackagingReduceView(PackagingStockView):
    stock_action = services.ACTION_CONSUME


class PackagingIncreaseView(PackagingStockView):
    stock_action = services.ACTION_RESTOCK


class StockMovementListView(generics.ListAPIView):
    """
    GET: Stock audit trail (admin)

    Query Parameters:
        - kind: rohseife / duftoel / verpackung
        - reference: e.g. an order number
    """
    permission_classes = [IsAdminRole]
    serializer_class = StockMovementSerializer

    def get_queryset(self):
        queryset = StockMovement.objects.all()
        kind = self.request.query_params.get('kind')
        if kind:
            queryset = queryset.filter(kind=kind)
        reference = self.request.query_params.get('reference')
        if reference:
            queryset = queryset.filter(reference=reference)
        return queryset[:500]


# =============================================================================
# Statistics
# =============================================================================

class StockOverviewView(APIView):
    """
    GET: Dashboard statistics for one material kind (admin)
    """
    permission_classes = [IsAdminRole]
    model = None
    group_by = []

    def get(self, request):
        return Response(services.stock_overview(self.model, group_by=self.group_by))


class RawSoapOverviewView(StockOverviewView):
    model = RawSoap


class FragranceOilOverviewView(StockOverviewView):
    model = FragranceOil
    group_by = ['scent_family', 'intensity']


class PackagingOverviewView(StockOverviewView):
    model = Packaging
    group_by = ['form', 'material']


# =============================================================================
# Product Views
# =============================================================================

class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List active products with their materials
    POST: Create a product (admin)

    Uses select_related to eliminate N+1 queries.
    """
    permission_classes = [IsAdminOrReadOnly]
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.select_related(
            'raw_soap', 'second_raw_soap', 'fragrance_oil', 'packaging'
        )
        if self.request.query_params.get('all', '').lower() != 'true':
            queryset = queryset.filter(is_active=True)
        return queryset.order_by('name')


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update a product (admin)
    DELETE: Deactivate a product (admin)
    """
    permission_classes = [IsAdminOrReadOnly]
    serializer_class = ProductSerializer

    def get_queryset(self):
        return Product.objects.select_related(
            'raw_soap', 'second_raw_soap', 'fragrance_oil', 'packaging'
        )

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
