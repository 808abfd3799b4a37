from decimal import Decimal

from rest_framework import serializers

from clinic.models import Bed, Ward
from .common import CleanCharField, iso, money
from .patient import patient_brief


class WardCreateSerializer(serializers.Serializer):
    wardNumber = CleanCharField(max_length=20)
    wardName = CleanCharField(max_length=120)
    wardType = serializers.ChoiceField(choices=[c[0] for c in Ward.TYPE_CHOICES])
    department = CleanCharField(max_length=120, required=False, allow_blank=True)
    floor = serializers.IntegerField(required=False, default=0)
    totalBeds = serializers.IntegerField(min_value=1, max_value=500)
    gender = serializers.ChoiceField(choices=[c[0] for c in Ward.GENDER_CHOICES], required=False, allow_blank=True)
    facilities = serializers.ListField(child=CleanCharField(max_length=120), required=False)
    dailyRate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    nurseInCharge = serializers.IntegerField(required=False, allow_null=True)


class WardUpdateSerializer(serializers.Serializer):
    """Bed counts are maintained by allocation and release only."""
    wardName = CleanCharField(max_length=120, required=False)
    wardType = serializers.ChoiceField(choices=[c[0] for c in Ward.TYPE_CHOICES], required=False)
    department = CleanCharField(max_length=120, required=False, allow_blank=True)
    floor = serializers.IntegerField(required=False)
    gender = serializers.ChoiceField(choices=[c[0] for c in Ward.GENDER_CHOICES], required=False, allow_blank=True)
    facilities = serializers.ListField(child=CleanCharField(max_length=120), required=False)
    dailyRate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False)
    nurseInCharge = serializers.IntegerField(required=False, allow_null=True)
    isActive = serializers.BooleanField(required=False)


class AllocateBedSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    admissionDate = serializers.DateTimeField(required=False, allow_null=True)
    expectedDischargeDate = serializers.DateTimeField(required=False, allow_null=True)
    reason = CleanCharField(max_length=255, required=False, allow_blank=True)


class ReleaseBedSerializer(serializers.Serializer):
    bedNumber = serializers.CharField(max_length=32)


class WardListQuerySerializer(serializers.Serializer):
    wardType = serializers.ChoiceField(choices=[c[0] for c in Ward.TYPE_CHOICES], required=False)
    department = serializers.CharField(required=False)
    floor = serializers.IntegerField(required=False)
    available = serializers.BooleanField(required=False, allow_null=True, default=None)


def format_bed(bed: Bed) -> dict:
    return {
        'bedNumber': bed.bed_number,
        'isOccupied': bed.is_occupied,
        'patient': patient_brief(bed.patient) if bed.patient_id else None,
        'admissionDate': iso(bed.admission_date),
        'expectedDischargeDate': iso(bed.expected_discharge_date),
    }


def format_ward(ward: Ward, with_beds: bool = False) -> dict:
    data = {
        'id': ward.id,
        'wardNumber': ward.ward_number,
        'wardName': ward.ward_name,
        'wardType': ward.ward_type,
        'department': ward.department,
        'floor': ward.floor,
        'totalBeds': ward.total_beds,
        'availableBeds': ward.available_beds,
        'occupiedBeds': ward.total_beds - ward.available_beds,
        'gender': ward.gender,
        'facilities': ward.facilities or [],
        'dailyRate': money(ward.daily_rate),
        'nurseInCharge': (
            {'id': ward.nurse_in_charge.id, 'name': ward.nurse_in_charge.name}
            if ward.nurse_in_charge_id else None
        ),
        'isActive': ward.is_active,
        'createdAt': iso(ward.created_at),
    }
    if with_beds:
        data['beds'] = [format_bed(b) for b in ward.beds.select_related('patient__user').order_by('id')]
    return data
