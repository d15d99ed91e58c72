"""Serializers for plans and enrollments."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from shared.domain.exceptions import IncompleteItinerary

from .domain.itinerary import ItineraryDay
from .models import Plan, PlanDay, PlanEnrollment
from .services import PlanSpec, create_plan


class PlanDaySerializer(serializers.ModelSerializer):
    class Meta:
        model = PlanDay
        fields = [
            "id",
            "day_number",
            "display_order",
            "title",
            "description",
            "start_time",
            "end_time",
            "estimated_duration_minutes",
            "notes",
        ]
        read_only_fields = ["id"]
        extra_kwargs = {
            "display_order": {"required": False},
            "estimated_duration_minutes": {"required": False},
        }

    def to_itinerary_day(self, attrs) -> ItineraryDay:
        return ItineraryDay(
            day_number=attrs["day_number"],
            title=attrs["title"],
            start_time=attrs["start_time"],
            end_time=attrs["end_time"],
            description=attrs.get("description", ""),
            display_order=attrs.get("display_order"),
            estimated_duration_minutes=attrs.get("estimated_duration_minutes"),
            notes=attrs.get("notes", ""),
        )


class PlanSerializer(serializers.ModelSerializer):
    """Plan with its itinerary; creation runs itinerary validation."""

    creator_id = serializers.ReadOnlyField(source="creator.id")
    days = PlanDaySerializer(many=True)
    is_published = serializers.BooleanField(read_only=True)

    class Meta:
        model = Plan
        fields = [
            "id",
            "name",
            "description",
            "included_items",
            "requirements",
            "packing_list",
            "capacity",
            "duration_days",
            "total_price",
            "difficulty",
            "is_public",
            "status",
            "is_published",
            "creator_id",
            "primary_image",
            "gallery_images",
            "days",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]

    def create(self, validated_data):  # type: ignore
        days_data = validated_data.pop("days", [])
        day_serializer = PlanDaySerializer()
        days = [day_serializer.to_itinerary_day(attrs) for attrs in days_data]
        spec = PlanSpec(creator=self.context["request"].user, **validated_data)
        try:
            return create_plan(spec, days)
        except IncompleteItinerary as exc:
            raise serializers.ValidationError({"days": exc.problems})
        except ValueError as exc:
            raise serializers.ValidationError({"days": [str(exc)]})


class PlanEnrollmentSerializer(serializers.ModelSerializer):
    plan_id = serializers.ReadOnlyField(source="plan.id")
    user_id = serializers.ReadOnlyField(source="user.id")
    total_price_calculated = serializers.SerializerMethodField()

    class Meta:
        model = PlanEnrollment
        fields = [
            "id",
            "plan_id",
            "user_id",
            "status",
            "enrolled_at",
            "plan_start_date",
            "plan_end_date",
            "participant_count",
            "amount_paid",
            "payment_method",
            "total_price_calculated",
            "special_requirements",
            "comments",
            "user_notes",
        ]
        read_only_fields = fields

    def get_total_price_calculated(self, obj: PlanEnrollment) -> str:
        return str(obj.total_price_calculated.amount)
