"""
Order API Views.

Implements:
- POST /orders/ - Checkout
- GET /orders/ - List orders (admin)
- GET /orders/{id}/ - Order detail with items and history
- GET /orders/mine/ - Orders of the logged-in customer
- PUT /orders/{id}/status/ - Status transition (admin)
- GET /orders/stats/ - Dashboard statistics (admin)
- GET /orders/{id}/invoice/ - Rendered invoice
- /invoice-templates/ - Invoice template CRUD (admin)
- /cart/ - Cart of the logged-in customer and checkout from it
"""
import logging
from datetime import timedelta

from django.db import models
from django.db.models import Avg, Count, Sum
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.permissions import IsAdminRole, IsCustomerRole
from customers.models import Customer
from .models import InvoiceTemplate, Order
from .serializers import (
    CartAddSerializer,
    CartCheckoutSerializer,
    CartUpdateSerializer,
    InvoiceTemplateSerializer,
    OrderCreateSerializer,
    OrderListSerializer,
    OrderSerializer,
    StatusUpdateSerializer,
)
from .services import (
    add_to_cart,
    cart_summary,
    checkout_cart,
    clear_cart,
    create_order,
    get_cart,
    remove_from_cart,
    render_invoice,
    transition_order_status,
    update_cart_item,
)

logger = logging.getLogger(__name__)


def _detail_queryset():
    return Order.objects.prefetch_related('items__product', 'status_history')


class OrderListCreateView(generics.ListCreateAPIView):
    """
    GET: List all orders (admin)
    POST: Checkout, creates an order in status 'neu'

    Query Parameters (GET):
        - status: Filter by status (neu, bezahlt, ...)
        - q: Search order number, e-mail and name
        - customer_id: Filter by customer
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [AllowAny()]
        return [IsAdminRole()]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderCreateSerializer
        return OrderListSerializer

    def get_queryset(self):
        queryset = Order.objects.prefetch_related('items')

        status_filter = self.request.query_params.get('status', '').lower()
        if status_filter in Order.Status.values:
            queryset = queryset.filter(status=status_filter)

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                models.Q(order_number__icontains=keyword) |
                models.Q(email__icontains=keyword) |
                models.Q(last_name__icontains=keyword)
            )

        customer_id = self.request.query_params.get('customer_id')
        if customer_id:
            queryset = queryset.filter(customer_id=customer_id)

        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        """
        Returns:
            - 201: Order created
            - 400: Validation error
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        items = data.pop('items')
        customer = request.user if isinstance(request.user, Customer) else None

        order = create_order(data, items, customer=customer)
        order = _detail_queryset().get(id=order.id)

        return Response(
            {
                'success': True,
                'message': f'Order {order.order_number} created',
                'data': OrderSerializer(order).data
            },
            status=status.HTTP_201_CREATED
        )


class OrderDetailView(generics.RetrieveAPIView):
    """
    GET: Retrieve order details with all items.

    Admins see every order, customers only their own.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return _detail_queryset()

    def get_object(self):
        order = super().get_object()
        user = self.request.user
        if not user.is_admin and order.customer_id != user.pk:
            raise AuthorizationError('You can only view your own orders')
        return order


class MyOrdersView(generics.ListAPIView):
    """
    GET: Orders placed by the logged-in customer, newest first.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return _detail_queryset().filter(customer=self.request.user).order_by('-created_at')


class OrderStatusView(APIView):
    """
    PUT: Move an order to its next status (admin).

    Request Body:
    {
        "status": "verschickt",
        "adminNote": "optional",
        "versand": {"anbieter": "DHL", "sendungsnummer": "00340434..."}
    }
    """
    permission_classes = [IsAdminRole]

    def put(self, request, pk):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = transition_order_status(
            pk,
            data['status'],
            admin_note=data.get('adminNote', ''),
            shipment=data.get('versand'),
            changed_by=request.user.email
        )
        order = _detail_queryset().get(id=order.id)

        return Response({
            'success': True,
            'message': f'Order {order.order_number} is now {order.get_status_display()}',
            'data': OrderSerializer(order).data
        })


class OrderStatsView(APIView):
    """
    GET: Order statistics for the admin dashboard.

    Query Parameters:
        - days: Limit to orders of the last N days (optional)
    """
    permission_classes = [IsAdminRole]

    def get(self, request):
        queryset = Order.objects.all()

        days = request.query_params.get('days')
        if days and days.isdigit():
            queryset = queryset.filter(created_at__gte=timezone.now() - timedelta(days=int(days)))

        revenue_filter = models.Q(status__in=Order.REVENUE_STATUSES)
        stats = queryset.aggregate(
            total_orders=Count('id'),
            total_revenue=Sum('grand_total', filter=revenue_filter),
            avg_order_value=Avg('grand_total', filter=revenue_filter),
            open_orders=Count('id', filter=models.Q(
                status__in=[Order.Status.NEW, Order.Status.PAID, Order.Status.CONFIRMED, Order.Status.PACKED]
            )),
        )
        by_status = {
            row['status']: row['count']
            for row in queryset.values('status').annotate(count=Count('id'))
        }

        # Handle None values
        stats['total_revenue'] = str(stats['total_revenue'] or '0.00')
        stats['avg_order_value'] = str(round(stats['avg_order_value'] or 0, 2))
        stats['by_status'] = {value: by_status.get(value, 0) for value in Order.Status.values}

        return Response(stats)


class OrderInvoiceView(APIView):
    """
    GET: Render the invoice of an order (admin or the ordering customer).

    Query Parameters:
        - template: Invoice template id (default template otherwise)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        order = Order.objects.filter(pk=pk).only('id', 'customer_id').first()
        if order is None:
            raise NotFoundError(f'Order {pk} not found')
        if not request.user.is_admin and order.customer_id != request.user.pk:
            raise AuthorizationError('You can only view your own invoices')

        template_id = request.query_params.get('template')
        if template_id is not None and not template_id.isdigit():
            raise ValidationError("'template' must be an id", field='template')

        return Response(render_invoice(pk, int(template_id) if template_id else None))


class InvoiceTemplateListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = InvoiceTemplateSerializer
    queryset = InvoiceTemplate.objects.all()


class InvoiceTemplateDetailView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAdminRole]
    serializer_class = InvoiceTemplateSerializer
    queryset = InvoiceTemplate.objects.all()


# =============================================================================
# Cart
# =============================================================================

def _cart_response(cart, message=None):
    body = {'success': True, 'data': cart_summary(cart)}
    if message:
        body['message'] = message
    return Response(body)


class CartView(APIView):
    """
    GET: The logged-in customer's cart. Admins have none and get an empty one.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        if request.user.is_admin:
            return _cart_response(None)
        return _cart_response(get_cart(request.user))


class CartAddView(APIView):
    """
    POST: Add a product to the cart.

    Request Body: {"product_id": 1, "quantity": 2}
    """
    permission_classes = [IsCustomerRole]

    def post(self, request):
        serializer = CartAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = add_to_cart(request.user, **serializer.validated_data)
        return _cart_response(cart, 'Product added to cart')


class CartUpdateView(APIView):
    """
    PUT: Set the quantity of a cart line; 0 removes it.

    Request Body: {"product_id": 1, "quantity": 3}
    """
    permission_classes = [IsCustomerRole]

    def put(self, request):
        serializer = CartUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = update_cart_item(request.user, **serializer.validated_data)
        return _cart_response(cart, 'Cart updated')


class CartRemoveView(APIView):
    permission_classes = [IsCustomerRole]

    def delete(self, request, product_id):
        return _cart_response(remove_from_cart(request.user, product_id), 'Product removed')


class CartClearView(APIView):
    permission_classes = [IsCustomerRole]

    def delete(self, request):
        return _cart_response(clear_cart(request.user), 'Cart cleared')


class CartCheckoutView(APIView):
    """
    POST: Check out the cart as a new order and empty the cart.

    Returns:
        - 201: Order created
        - 400: Empty cart, incomplete address or unavailable product
    """
    permission_classes = [IsCustomerRole]

    def post(self, request):
        serializer = CartCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = checkout_cart(request.user, dict(serializer.validated_data))
        order = _detail_queryset().get(id=order.id)

        return Response(
            {
                'success': True,
                'message': f'Order {order.order_number} created',
                'data': OrderSerializer(order).data
            },
            status=status.HTTP_201_CREATED
        )
