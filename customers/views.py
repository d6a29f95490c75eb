"""
Customer API Views.

Implements:
- POST /auth/register/ - Create account, returns token
- POST /auth/login/ - Exchange credentials for a token
- GET/PATCH /customers/me/ - Self-service profile
- GET /customers/ - Admin list with filters
- GET/PATCH /customers/{id}/ - Admin edit
- POST /customers/{id}/disable/ - Admin soft-disable
"""
import logging

from django.db.models import Q
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.authentication import issue_token
from core.exceptions import AuthenticationError
from core.permissions import IsAdminRole
from .models import Customer
from .serializers import (
    CustomerSerializer,
    CustomerAdminSerializer,
    RegisterSerializer,
    LoginSerializer,
)

logger = logging.getLogger(__name__)


class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = serializer.save()
        logger.info(f"Registered customer {customer.customer_number}")
        return Response(
            {
                'success': True,
                'message': 'Account created',
                'data': {
                    'token': issue_token(customer),
                    'customer': CustomerSerializer(customer).data,
                },
            },
            status=status.HTTP_201_CREATED
        )


class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data['email'].strip().lower()
        customer = Customer.objects.filter(email=email).first()
        if customer is None or not customer.check_password(serializer.validated_data['password']):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationError('Invalid e-mail or password')
        if not customer.is_active:
            raise AuthenticationError('Account disabled')

        customer.record_login()
        return Response({
            'success': True,
            'data': {
                'token': issue_token(customer),
                'customer': CustomerSerializer(customer).data,
            },
        })


class MeView(generics.RetrieveUpdateAPIView):
    """
    GET: Own profile
    PUT/PATCH: Update own profile (role and e-mail are read-only)
    """
    serializer_class = CustomerSerializer
    permission_classes = [IsAuthenticated]

    def get_object(self):
        return self.request.user


class CustomerListView(generics.ListAPIView):
    """
    GET: List customers (admin)

    Query Parameters:
        - q: Search in name, e-mail and customer number
        - role: kunde | admin
        - active: true | false
    """
    serializer_class = CustomerAdminSerializer
    permission_classes = [IsAdminRole]

    def get_queryset(self):
        queryset = Customer.objects.all()

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(first_name__icontains=keyword) |
                Q(last_name__icontains=keyword) |
                Q(email__icontains=keyword) |
                Q(customer_number__icontains=keyword)
            )

        role = self.request.query_params.get('role')
        if role in Customer.Role.values:
            queryset = queryset.filter(role=role)

        active = self.request.query_params.get('active', '').lower()
        if active in ('true', 'false'):
            queryset = queryset.filter(is_active=active == 'true')

        return queryset


class CustomerAdminDetailView(generics.RetrieveUpdateAPIView):
    """
    GET: Retrieve a customer
    PUT/PATCH: Admin edit including role
    """
    queryset = Customer.objects.all()
    serializer_class = CustomerAdminSerializer
    permission_classes = [IsAdminRole]


class CustomerDisableView(APIView):
    """POST: Soft-disable an account. Customers are never deleted."""
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        customer = generics.get_object_or_404(Customer, pk=pk)
        customer.disable()
        logger.info(f"Customer {customer.customer_number} disabled by {request.user.email}")
        return Response({
            'success': True,
            'message': 'Account disabled',
            'data': CustomerAdminSerializer(customer).data,
        })
