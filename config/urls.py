"""
URL configuration for the soap shop backend.
"""
from django.contrib import admin
from django.urls import path, include

from core.views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health-check'),
    path('api/', include('customers.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('orders.urls')),
    path('api/', include('inquiries.urls')),
    path('api/', include('notifications.urls')),
    path('api/', include('gallery.urls')),
]
