"""Serializers for the reservation domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.catalog.models import Service
from shared.domain.exceptions import CapacityExceeded, InvalidStateTransition
from shared.domain.value_objects import DateRange, TimeWindow

from .models import Reservation, ServiceBooking
from .services import add_service_booking


class ServiceBookingSerializer(serializers.ModelSerializer):
    """Line item as shown to the tourist and to the provider."""

    service_id = serializers.ReadOnlyField(source="service.id")
    service_name = serializers.ReadOnlyField(source="service.name")
    provider_id = serializers.ReadOnlyField(source="provider.id")
    subtotal = serializers.SerializerMethodField()

    class Meta:
        model = ServiceBooking
        fields = [
            "id",
            "service_id",
            "service_name",
            "provider_id",
            "start_date",
            "end_date",
            "start_time",
            "end_time",
            "duration_minutes",
            "quantity",
            "unit_price",
            "subtotal",
            "status",
            "client_notes",
            "provider_notes",
            "created_at",
        ]
        read_only_fields = fields

    def get_subtotal(self, obj: ServiceBooking) -> str:
        return str(obj.subtotal.amount)


class ReservationSerializer(serializers.ModelSerializer):
    user_id = serializers.ReadOnlyField(source="user.id")
    service_bookings = ServiceBookingSerializer(many=True, read_only=True)
    total_amount = serializers.SerializerMethodField()
    currency = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = [
            "id",
            "user_id",
            "code",
            "status",
            "notes",
            "service_bookings",
            "total_amount",
            "currency",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_total_amount(self, obj: Reservation) -> str:
        return str(obj.total_amount.amount)

    def get_currency(self, obj: Reservation) -> str:
        return obj.total_amount.currency


class ServiceBookingCreateSerializer(serializers.Serializer):
    """Adding a service to the cart given in ``context["reservation"]``."""

    service = serializers.IntegerField(min_value=1)
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False, allow_null=True)
    start_time = serializers.TimeField()
    end_time = serializers.TimeField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    client_notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):  # type: ignore
        try:
            attrs["dates"] = DateRange(attrs["start_date"], attrs.get("end_date"))
            attrs["times"] = TimeWindow(attrs["start_time"], attrs["end_time"])
        except ValueError as exc:
            raise serializers.ValidationError(str(exc))
        if attrs["times"].wraps_midnight and not attrs["dates"].is_multi_day:
            raise serializers.ValidationError(
                "End time must be after start time unless the booking spans several days."
            )
        return attrs

    def create(self, validated_data):  # type: ignore
        reservation = self.context["reservation"]
        try:
            return add_service_booking(
                reservation.pk,
                validated_data["service"],
                validated_data["dates"],
                validated_data["times"],
                validated_data["quantity"],
                validated_data["client_notes"],
            )
        except Service.DoesNotExist:
            raise serializers.ValidationError({"service": ["This service is not available for booking."]})
        except (CapacityExceeded, InvalidStateTransition) as exc:
            raise serializers.ValidationError({"non_field_errors": [str(exc)]})

    def to_representation(self, instance):  # type: ignore
        return ServiceBookingSerializer(instance, context=self.context).data
