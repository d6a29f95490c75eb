"""
URL routing for inquiry API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inquiries'

urlpatterns = [
    path('inquiries/', views.InquiryListCreateView.as_view(), name='inquiry-list'),
    path('inquiries/mine/', views.MyInquiriesView.as_view(), name='inquiry-mine'),
    path('inquiries/stats/', views.InquiryStatsView.as_view(), name='inquiry-stats'),
    path('inquiries/<int:pk>/', views.InquiryDetailView.as_view(), name='inquiry-detail'),
    path('inquiries/<int:pk>/accept/', views.InquiryAcceptView.as_view(), name='inquiry-accept'),
    path('inquiries/<int:pk>/reject/', views.InquiryRejectView.as_view(), name='inquiry-reject'),
    path('inquiries/<int:pk>/pay/', views.InquiryPayView.as_view(), name='inquiry-pay'),
]
