"""Admin registration for plans."""

from __future__ import annotations

from django.contrib import admin

from .models import Plan, PlanDay, PlanEnrollment


class PlanDayInline(admin.TabularInline):
    model = PlanDay
    extra = 0
    ordering = ("day_number",)


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "status",
        "is_public",
        "duration_days",
        "capacity",
        "total_price",
        "difficulty",
        "creator",
    )
    list_filter = ("status", "is_public", "difficulty")
    search_fields = ("name", "description", "creator__username")
    readonly_fields = ("created_at", "updated_at")
    inlines = [PlanDayInline]


@admin.register(PlanEnrollment)
class PlanEnrollmentAdmin(admin.ModelAdmin):
    list_display = (
        "plan",
        "user",
        "status",
        "plan_start_date",
        "plan_end_date",
        "participant_count",
        "amount_paid",
        "payment_method",
    )
    list_filter = ("status", "payment_method", "plan_start_date")
    search_fields = ("plan__name", "user__username", "user__email")
    readonly_fields = ("status", "enrolled_at", "amount_paid", "payment_method", "created_at", "updated_at")
