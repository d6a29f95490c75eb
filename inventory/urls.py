"""
URL routing for inventory API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Raw soap (Rohseife)
    path('rohseife/', views.RawSoapListCreateView.as_view(), name='rawsoap-list'),
    path('rohseife/<int:pk>/', views.RawSoapDetailView.as_view(), name='rawsoap-detail'),
    path('rohseife/<int:pk>/vorrat/', views.RawSoapStockView.as_view(), name='rawsoap-stock'),
    path('rohseife/calculate/', views.RawSoapCalculationView.as_view(), name='rawsoap-calculate'),
    path('rohseife/stats/overview/', views.RawSoapOverviewView.as_view(), name='rawsoap-overview'),

    # Fragrance oils (Duftöle)
    path('duftoele/', views.FragranceOilListCreateView.as_view(), name='fragranceoil-list'),
    path('duftoele/<int:pk>/', views.FragranceOilDetailView.as_view(), name='fragranceoil-detail'),
    path('duftoele/<int:pk>/vorrat/', views.FragranceOilStockView.as_view(), name='fragranceoil-stock'),
    path('duftoele/calculate/', views.FragranceOilCalculationView.as_view(), name='fragranceoil-calculate'),
    path(
        'duftoele/calculate-by-weight/',
        views.FragranceByWeightView.as_view(),
        name='fragranceoil-calculate-by-weight'
    ),
    path('duftoele/stats/overview/', views.FragranceOilOverviewView.as_view(), name='fragranceoil-overview'),

    # Packaging (Verpackungen)
    path('verpackungen/', views.PackagingListCreateView.as_view(), name='packaging-list'),
    path('verpackungen/<int:pk>/', views.PackagingDetailView.as_view(), name='packaging-detail'),
    path('verpackungen/calculate/', views.PackagingCalculationView.as_view(), name='packaging-calculate'),
    path('verpackungen/vorrat/reduzieren/', views.PackagingReduceView.as_view(), name='packaging-reduce'),
    path('verpackungen/vorrat/erhoehen/', views.PackagingIncreaseView.as_view(), name='packaging-increase'),
    path('verpackungen/stats/overview/', views.PackagingOverviewView.as_view(), name='packaging-overview'),

    # Audit trail
    path('stock-movements/', views.StockMovementListView.as_view(), name='stock-movement-list'),

    # Products
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),
]
