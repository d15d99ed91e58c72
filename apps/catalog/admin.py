"""Admin registrations for the catalog."""

from __future__ import annotations

from django.contrib import admin

from .models import Provider, Service, Slide


class ServiceInline(admin.TabularInline):
    model = Service
    extra = 0
    fields = ("name", "reference_price", "capacity", "is_active")


@admin.register(Provider)
class ProviderAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "email")
    inlines = [ServiceInline]


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("name", "provider", "reference_price", "capacity", "is_active")
    list_filter = ("is_active", "provider")
    search_fields = ("name", "description", "location_reference")


@admin.register(Slide)
class SlideAdmin(admin.ModelAdmin):
    list_display = ("__str__", "target_kind", "display_order", "is_active")
    list_filter = ("target_kind", "is_active")
