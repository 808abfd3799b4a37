from rest_framework import serializers

from clinic.models import Prescription
from .common import CleanCharField, LenientDateField, iso
from .doctor import doctor_brief
from .medicine import medicine_brief
from .patient import patient_brief


class PrescriptionItemSerializer(serializers.Serializer):
    medicine = serializers.IntegerField()
    dosage = CleanCharField(max_length=120)
    frequency = CleanCharField(max_length=120)
    duration = CleanCharField(max_length=120)
    instructions = CleanCharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)


class PrescriptionCreateSerializer(serializers.Serializer):
    patient = serializers.IntegerField()
    doctor = serializers.IntegerField(required=False)
    appointment = serializers.IntegerField(required=False, allow_null=True)
    medicines = PrescriptionItemSerializer(many=True, allow_empty=False)
    diagnosis = CleanCharField()
    symptoms = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    labTests = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    refillsAllowed = serializers.IntegerField(min_value=0, required=False, default=0)
    validUntil = serializers.DateTimeField(required=False, allow_null=True)
    notes = CleanCharField(required=False, allow_blank=True)


class PrescriptionUpdateSerializer(serializers.Serializer):
    medicines = PrescriptionItemSerializer(many=True, allow_empty=False, required=False)
    diagnosis = CleanCharField(required=False)
    symptoms = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    labTests = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    refillsAllowed = serializers.IntegerField(min_value=0, required=False)
    validUntil = serializers.DateTimeField(required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class StatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[c[0] for c in Prescription.STATUS_CHOICES],
        error_messages={
            'invalid_choice': 'Invalid status. Must be one of: '
                              + ', '.join(c[0] for c in Prescription.STATUS_CHOICES),
        },
    )


class PrescriptionListQuerySerializer(serializers.Serializer):
    patient = serializers.IntegerField(required=False)
    doctor = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=[c[0] for c in Prescription.STATUS_CHOICES], required=False)
    startDate = LenientDateField(required=False)
    endDate = LenientDateField(required=False)


class DateRangeQuerySerializer(serializers.Serializer):
    startDate = LenientDateField(required=False)
    endDate = LenientDateField(required=False)


def format_prescription(p: Prescription) -> dict:
    appt = p.appointment
    return {
        'id': p.id,
        'prescriptionId': p.prescription_id,
        'patient': patient_brief(p.patient),
        'doctor': doctor_brief(p.doctor),
        'appointment': (
            {'id': appt.id, 'appointmentId': appt.appointment_id, 'appointmentDate': iso(appt.appointment_date)}
            if appt else None
        ),
        'medicines': [
            {
                'medicine': medicine_brief(item.medicine),
                'dosage': item.dosage,
                'frequency': item.frequency,
                'duration': item.duration,
                'instructions': item.instructions,
                'quantity': item.quantity,
            }
            for item in p.items.select_related('medicine')
        ],
        'diagnosis': p.diagnosis,
        'symptoms': p.symptoms or [],
        'labTests': p.lab_tests or [],
        'status': p.status,
        'refillsAllowed': p.refills_allowed,
        'refillsUsed': p.refills_used,
        'refillsRemaining': p.refills_allowed - p.refills_used,
        'validUntil': iso(p.valid_until),
        'notes': p.notes,
        'createdAt': iso(p.created_at),
        'updatedAt': iso(p.updated_at),
    }
