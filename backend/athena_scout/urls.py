"""
URL configuration for the Athena Scout backend.
"""
from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('scout.urls')),
]
