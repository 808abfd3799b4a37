from decimal import Decimal

from rest_framework import serializers

from clinic.models import Appointment
from .common import CleanCharField, LenientDateField, TimeSlotSerializer, iso, money
from .doctor import doctor_brief
from .patient import patient_brief


class AppointmentCreateSerializer(serializers.Serializer):
    patient = serializers.IntegerField(required=False)
    doctor = serializers.IntegerField()
    appointmentDate = LenientDateField()
    timeSlot = TimeSlotSerializer()
    type = serializers.ChoiceField(choices=[c[0] for c in Appointment.TYPE_CHOICES], default='Consultation')
    priority = serializers.ChoiceField(choices=[c[0] for c in Appointment.PRIORITY_CHOICES], default='Normal')
    symptoms = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    notes = CleanCharField(required=False, allow_blank=True)
    consultationFee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )


class AppointmentUpdateSerializer(serializers.Serializer):
    appointmentDate = LenientDateField(required=False)
    timeSlot = TimeSlotSerializer(required=False)
    type = serializers.ChoiceField(choices=[c[0] for c in Appointment.TYPE_CHOICES], required=False)
    status = serializers.ChoiceField(choices=[c[0] for c in Appointment.STATUS_CHOICES], required=False)
    priority = serializers.ChoiceField(choices=[c[0] for c in Appointment.PRIORITY_CHOICES], required=False)
    symptoms = serializers.ListField(child=CleanCharField(max_length=255), required=False)
    diagnosis = CleanCharField(required=False, allow_blank=True)
    notes = CleanCharField(required=False, allow_blank=True)
    consultationFee = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )
    paid = serializers.BooleanField(required=False)
    paymentMethod = serializers.ChoiceField(
        choices=[c[0] for c in Appointment.PAYMENT_METHOD_CHOICES], required=False, allow_blank=True
    )


class CancelSerializer(serializers.Serializer):
    reason = CleanCharField(max_length=255, required=False, allow_blank=True)


class RescheduleSerializer(serializers.Serializer):
    appointmentDate = LenientDateField()
    timeSlot = TimeSlotSerializer()


class AppointmentListQuerySerializer(serializers.Serializer):
    doctor = serializers.IntegerField(required=False)
    patient = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=[c[0] for c in Appointment.STATUS_CHOICES], required=False)
    priority = serializers.ChoiceField(choices=[c[0] for c in Appointment.PRIORITY_CHOICES], required=False)
    date = LenientDateField(required=False)
    startDate = LenientDateField(required=False)
    endDate = LenientDateField(required=False)


def format_appointment(appt: Appointment) -> dict:
    return {
        'id': appt.id,
        'appointmentId': appt.appointment_id,
        'patient': patient_brief(appt.patient),
        'doctor': doctor_brief(appt.doctor),
        'appointmentDate': iso(appt.appointment_date),
        'timeSlot': {'startTime': appt.start_time, 'endTime': appt.end_time},
        'type': appt.type,
        'status': appt.status,
        'priority': appt.priority,
        'symptoms': appt.symptoms or [],
        'diagnosis': appt.diagnosis,
        'notes': appt.notes,
        'cancelReason': appt.cancel_reason,
        'consultationFee': money(appt.consultation_fee),
        'paid': appt.paid,
        'paymentMethod': appt.payment_method,
        'createdAt': iso(appt.created_at),
        'updatedAt': iso(appt.updated_at),
    }
