from decimal import Decimal

from rest_framework import serializers

from clinic.models import Doctor
from .common import TIME_RE, CleanCharField, LenientDateField, money, iso, user_brief

WEEKDAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


class AvailabilitySlotSerializer(serializers.Serializer):
    startTime = serializers.RegexField(TIME_RE)
    endTime = serializers.RegexField(TIME_RE)
    isAvailable = serializers.BooleanField(default=True)


class AvailabilityDaySerializer(serializers.Serializer):
    day = serializers.ChoiceField(choices=WEEKDAYS)
    slots = AvailabilitySlotSerializer(many=True)


class DoctorCreateSerializer(serializers.Serializer):
    userId = serializers.IntegerField()
    specialization = CleanCharField(max_length=120)
    qualification = CleanCharField(max_length=255)
    experience = serializers.IntegerField(min_value=0)
    licenseNumber = CleanCharField(max_length=64)
    department = CleanCharField(max_length=120)
    consultationFee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    availability = AvailabilityDaySerializer(many=True, required=False)
    isAvailable = serializers.BooleanField(required=False)


class DoctorUpdateSerializer(serializers.Serializer):
    specialization = CleanCharField(max_length=120, required=False)
    qualification = CleanCharField(max_length=255, required=False)
    experience = serializers.IntegerField(min_value=0, required=False)
    licenseNumber = CleanCharField(max_length=64, required=False)
    department = CleanCharField(max_length=120, required=False)
    consultationFee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )
    isAvailable = serializers.BooleanField(required=False)
    rating = serializers.DecimalField(
        max_digits=3, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('5'), required=False
    )


class AvailabilityUpdateSerializer(serializers.Serializer):
    availability = AvailabilityDaySerializer(many=True)


class OnCallShiftSerializer(serializers.Serializer):
    # night shifts may end after midnight, so no ordering check on the times
    date = LenientDateField()
    startTime = serializers.RegexField(TIME_RE)
    endTime = serializers.RegexField(TIME_RE)


class DoctorListQuerySerializer(serializers.Serializer):
    specialization = serializers.CharField(required=False)
    department = serializers.CharField(required=False)
    isAvailable = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, allow_blank=True)


class SlotQuerySerializer(serializers.Serializer):
    date = LenientDateField()


def format_doctor(doctor: Doctor, with_user: bool = True) -> dict:
    data = {
        'id': doctor.id,
        'userId': doctor.user_id,
        'specialization': doctor.specialization,
        'qualification': doctor.qualification,
        'experience': doctor.experience,
        'licenseNumber': doctor.license_number,
        'department': doctor.department,
        'consultationFee': money(doctor.consultation_fee),
        'availability': doctor.availability or [],
        'onCallShifts': doctor.on_call_shifts or [],
        'rating': money(doctor.rating),
        'totalRatings': doctor.total_ratings,
        'isAvailable': doctor.is_available,
        'createdAt': iso(doctor.created_at),
    }
    if with_user:
        data['user'] = user_brief(doctor.user)
    return data


def doctor_brief(doctor: Doctor | None) -> dict | None:
    if doctor is None:
        return None
    return {
        'id': doctor.id,
        'name': doctor.user.name,
        'specialization': doctor.specialization,
        'department': doctor.department,
    }
