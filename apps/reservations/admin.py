"""Admin registration for reservations."""

from __future__ import annotations

from django.contrib import admin

from .models import Reservation, ServiceBooking


class ServiceBookingInline(admin.TabularInline):
    model = ServiceBooking
    extra = 0
    fields = (
        "service",
        "start_date",
        "end_date",
        "start_time",
        "end_time",
        "quantity",
        "unit_price",
        "status",
    )
    readonly_fields = fields
    can_delete = False


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("code", "user", "status", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("code", "user__username", "user__email")
    readonly_fields = ("code", "status", "created_at", "updated_at")
    inlines = [ServiceBookingInline]

    def has_delete_permission(self, request, obj=None):  # type: ignore
        if obj is not None and obj.code:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(ServiceBooking)
class ServiceBookingAdmin(admin.ModelAdmin):
    list_display = (
        "reservation",
        "service",
        "provider",
        "start_date",
        "end_date",
        "start_time",
        "end_time",
        "quantity",
        "status",
    )
    list_filter = ("status", "provider", "start_date")
    search_fields = ("reservation__code", "service__name", "provider__name")
    readonly_fields = (
        "reservation",
        "service",
        "provider",
        "duration_minutes",
        "unit_price",
        "status",
        "created_at",
        "updated_at",
    )
