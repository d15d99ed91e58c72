"""Serializers for the catalog domain."""

from __future__ import annotations

from dataclasses import astuple

from rest_framework import serializers  # type: ignore

from .models import Provider, Service, Slide


class ProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Provider
        fields = ["id", "name", "description", "phone", "email", "is_active"]


class SlideSerializer(serializers.ModelSerializer):
    target = serializers.SerializerMethodField()

    class Meta:
        model = Slide
        fields = ["id", "title", "description", "image", "display_order", "target"]
        read_only_fields = fields

    def get_target(self, obj: Slide) -> dict:
        target = obj.target
        (target_id,) = astuple(target)
        return {"kind": target.kind.value, "id": target_id}


class ServiceSerializer(serializers.ModelSerializer):
    provider = ProviderSerializer(read_only=True)
    slides = serializers.SerializerMethodField()

    class Meta:
        model = Service
        fields = [
            "id",
            "name",
            "description",
            "reference_price",
            "capacity",
            "is_active",
            "latitude",
            "longitude",
            "location_reference",
            "provider",
            "slides",
        ]
        read_only_fields = fields

    def get_slides(self, obj: Service) -> list[dict]:
        return SlideSerializer(obj.slides.filter(is_active=True), many=True).data
