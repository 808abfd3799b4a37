"""Shared serializer fields and output helpers."""
from __future__ import annotations

from decimal import Decimal

import bleach
from rest_framework import serializers

TIME_RE = r'^([01]\d|2[0-3]):[0-5]\d$'
CENT = Decimal('0.01')


def clean_text(value: str | None) -> str:
    return bleach.clean((value or '').strip(), strip=True)


class CleanCharField(serializers.CharField):
    """CharField that strips markup from user supplied text."""

    def to_internal_value(self, data):
        return clean_text(super().to_internal_value(data))


class LenientDateField(serializers.DateField):
    """Accepts ``YYYY-MM-DD`` as well as a full ISO timestamp."""

    def to_internal_value(self, value):
        if isinstance(value, str) and 'T' in value:
            value = value.split('T', 1)[0]
        return super().to_internal_value(value)


class TimeSlotSerializer(serializers.Serializer):
    startTime = serializers.RegexField(TIME_RE)
    endTime = serializers.RegexField(TIME_RE)

    def validate(self, attrs):
        if attrs['endTime'] <= attrs['startTime']:
            raise serializers.ValidationError('endTime must be after startTime')
        return attrs


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=20)


def money(value) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(CENT))


def iso(value) -> str | None:
    return value.isoformat() if value else None


def user_brief(user) -> dict | None:
    if user is None:
        return None
    return {'id': user.id, 'name': user.name, 'email': user.email, 'phone': user.phone}
