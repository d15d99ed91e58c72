"""URL configuration for the tourism booking core.

The core is consumed as Python operations; HTTP routing belongs to the
controller layer. Only the Django admin is mounted here.
"""
from django.contrib import admin  # type: ignore
from django.urls import path  # type: ignore

urlpatterns = [
    path('admin/', admin.site.urls),
]
