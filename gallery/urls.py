"""
URL routing for gallery API endpoints.
"""
from django.urls import path
from . import views

app_name = 'gallery'

urlpatterns = [
    path('gallery/', views.GalleryListView.as_view(), name='gallery-list'),
    path('gallery/admin/all/', views.GalleryAdminListView.as_view(), name='gallery-admin-list'),
    path('gallery/admin/upload/', views.GalleryUploadView.as_view(), name='gallery-upload'),
    path('gallery/admin/reorder/', views.GalleryReorderView.as_view(), name='gallery-reorder'),
    path('gallery/admin/<int:pk>/', views.GalleryAdminDetailView.as_view(), name='gallery-admin-detail'),
    path('gallery/<int:pk>/', views.GalleryDetailView.as_view(), name='gallery-detail'),
]
