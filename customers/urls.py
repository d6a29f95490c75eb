"""
URL routing for customer account endpoints.
"""
from django.urls import path
from . import views

app_name = 'customers'

urlpatterns = [
    path('auth/register/', views.RegisterView.as_view(), name='register'),
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('customers/', views.CustomerListView.as_view(), name='customer-list'),
    path('customers/me/', views.MeView.as_view(), name='customer-me'),
    path('customers/<int:pk>/', views.CustomerAdminDetailView.as_view(), name='customer-detail'),
    path('customers/<int:pk>/disable/', views.CustomerDisableView.as_view(), name='customer-disable'),
]
