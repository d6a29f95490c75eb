"""
URL routing for the e-mail log.
"""
from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('emails/', views.EmailLogListView.as_view(), name='email-list'),
    path('emails/stats/', views.EmailStatsView.as_view(), name='email-stats'),
    path('emails/<int:pk>/', views.EmailDetailView.as_view(), name='email-detail'),
    path('emails/<int:pk>/retry/', views.EmailRetryView.as_view(), name='email-retry'),
]
