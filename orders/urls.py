"""
URL routing for order, cart and invoice API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('orders/mine/', views.MyOrdersView.as_view(), name='order-mine'),
    path('orders/stats/', views.OrderStatsView.as_view(), name='order-stats'),
    path('orders/<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<int:pk>/status/', views.OrderStatusView.as_view(), name='order-status'),
    path('orders/<int:pk>/invoice/', views.OrderInvoiceView.as_view(), name='order-invoice'),

    path('invoice-templates/', views.InvoiceTemplateListCreateView.as_view(), name='invoice-template-list'),
    path('invoice-templates/<int:pk>/', views.InvoiceTemplateDetailView.as_view(), name='invoice-template-detail'),

    path('cart/', views.CartView.as_view(), name='cart'),
    path('cart/add/', views.CartAddView.as_view(), name='cart-add'),
    path('cart/update/', views.CartUpdateView.as_view(), name='cart-update'),
    path('cart/remove/<int:product_id>/', views.CartRemoveView.as_view(), name='cart-remove'),
    path('cart/clear/', views.CartClearView.as_view(), name='cart-clear'),
    path('cart/checkout/', views.CartCheckoutView.as_view(), name='cart-checkout'),
]
