"""Catalog models: providers, their services and showcase slides."""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.targets import (
    MediaTarget,
    PlanTarget,
    ProviderTarget,
    ServiceTarget,
    TargetKind,
    target_for,
)


class Provider(models.Model):
    """Local business offering tourism services."""

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Provider")
        verbose_name_plural = _("Providers")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class ServiceQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True, provider__is_active=True)

    def for_provider(self, provider_id: int):
        return self.filter(provider_id=provider_id)


class Service(models.Model):
    """A bookable activity with a fixed capacity per time window."""

    provider = models.ForeignKey(
        Provider,
        on_delete=models.PROTECT,
        related_name="services",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    reference_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    capacity = models.PositiveIntegerField(
        default=1,
        help_text=_("Maximum party size served at the same time."),
    )
    is_active = models.BooleanField(default=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_reference = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ServiceQuerySet.as_manager()

    class Meta:
        verbose_name = _("Service")
        verbose_name_plural = _("Services")
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity__gte=1),
                name="catalog_service_capacity_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["provider", "is_active"], name="catalog_service_provider_idx"),
        ]

    def __str__(self) -> str:
        return self.name


def _only(kind: TargetKind, field_name: str) -> models.Q:
    lookups = {f"{name}__isnull": name != field_name for name in ("service", "provider", "plan")}
    return models.Q(target_kind=kind.value, **lookups)


class Slide(models.Model):
    """Showcase image attached to exactly one service, provider or plan."""

    class TargetKindChoices(models.TextChoices):
        SERVICE = TargetKind.SERVICE.value, _("Service")
        PROVIDER = TargetKind.PROVIDER.value, _("Provider")
        PLAN = TargetKind.PLAN.value, _("Plan")

    target_kind = models.CharField(max_length=20, choices=TargetKindChoices.choices)
    service = models.ForeignKey(
        Service, null=True, blank=True, on_delete=models.CASCADE, related_name="slides"
    )
    provider = models.ForeignKey(
        Provider, null=True, blank=True, on_delete=models.CASCADE, related_name="slides"
    )
    plan = models.ForeignKey(
        "plans.Plan", null=True, blank=True, on_delete=models.CASCADE, related_name="slides"
    )
    title = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    image = models.CharField(max_length=255, help_text=_("Path assigned by the storage service."))
    display_order = models.PositiveSmallIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Slide")
        verbose_name_plural = _("Slides")
        ordering = ["display_order", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    _only(TargetKind.SERVICE, "service")
                    | _only(TargetKind.PROVIDER, "provider")
                    | _only(TargetKind.PLAN, "plan")
                ),
                name="catalog_slide_single_typed_target",
            ),
        ]

    def __str__(self) -> str:
        return self.title or self.image

    @property
    def target(self) -> MediaTarget:
        kind = TargetKind(self.target_kind)
        target_id = {
            TargetKind.SERVICE: self.service_id,
            TargetKind.PROVIDER: self.provider_id,
            TargetKind.PLAN: self.plan_id,
        }[kind]
        return target_for(kind, target_id)

    @classmethod
    def attach(cls, target: MediaTarget, *, image: str, **fields) -> "Slide":
        """Create a slide for a typed target."""
        if isinstance(target, ServiceTarget):
            fields["service_id"] = target.service_id
        elif isinstance(target, ProviderTarget):
            fields["provider_id"] = target.provider_id
        elif isinstance(target, PlanTarget):
            fields["plan_id"] = target.plan_id
        else:
            raise TypeError(f"Unsupported slide target: {target!r}")
        return cls.objects.create(target_kind=target.kind.value, image=image, **fields)

    @classmethod
    def for_target(cls, target: MediaTarget):
        slides = cls.objects.filter(target_kind=target.kind.value, is_active=True)
        if isinstance(target, ServiceTarget):
            return slides.filter(service_id=target.service_id)
        if isinstance(target, ProviderTarget):
            return slides.filter(provider_id=target.provider_id)
        return slides.filter(plan_id=target.plan_id)
