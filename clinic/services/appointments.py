"""
Appointment scheduling.

A doctor's slot is identified by (doctor, date, start time).  Only one
appointment that still holds its slot, i.e. one that is neither
Cancelled nor Completed, may exist per slot.  Every booking path locks
the doctor row first so concurrent bookings for the same doctor are
checked one after another.
"""
from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework.exceptions import NotFound

from clinic.exceptions import ConflictError, RouteAccessDenied
from clinic.models import Appointment, Doctor, Patient
from clinic.services.audit import log_action
from clinic.services.ids import next_appointment_id

logger = logging.getLogger(__name__)

User = get_user_model()

_UPDATE_FIELDS = {
    'type': 'type',
    'status': 'status',
    'priority': 'priority',
    'symptoms': 'symptoms',
    'diagnosis': 'diagnosis',
    'notes': 'notes',
    'consultationFee': 'consultation_fee',
    'paid': 'paid',
    'paymentMethod': 'payment_method',
}


def _lock_doctor(doctor_id: int) -> Doctor:
    return Doctor.objects.select_for_update().get(pk=doctor_id)


def ensure_slot_free(doctor_id: int, day, start_time: str, *, exclude_pk: int | None = None) -> None:
    qs = Appointment.objects.filter(doctor_id=doctor_id, appointment_date=day, start_time=start_time)
    qs = qs.exclude(status__in=Appointment.RELEASED_STATUSES)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise ConflictError('Time slot not available')


def get_appointment(actor, pk) -> Appointment:
    appt = Appointment.objects.select_related('patient__user', 'doctor__user').filter(pk=pk).first()
    if appt is None:
        raise NotFound('Appointment not found')
    if actor.role == User.ROLE_PATIENT and appt.patient.user_id != actor.id:
        raise RouteAccessDenied('Not authorized to access this appointment')
    return appt


def list_appointments(actor, *, doctor=None, patient=None, status=None, priority=None,
                      day=None, start=None, end=None):
    qs = Appointment.objects.select_related('patient__user', 'doctor__user')
    if actor.role == User.ROLE_PATIENT:
        qs = qs.filter(patient__user=actor)
    elif actor.role == User.ROLE_DOCTOR and doctor is None:
        qs = qs.filter(doctor__user=actor)
    if doctor:
        qs = qs.filter(doctor_id=doctor)
    if patient:
        qs = qs.filter(patient_id=patient)
    if status:
        qs = qs.filter(status=status)
    if priority:
        qs = qs.filter(priority=priority)
    if day:
        qs = qs.filter(appointment_date=day)
    if start:
        qs = qs.filter(appointment_date__gte=start)
    if end:
        qs = qs.filter(appointment_date__lte=end)
    return qs.order_by('-appointment_date', 'start_time', 'id')


def create_appointment(actor, data: dict) -> Appointment:
    if actor.role == User.ROLE_PATIENT:
        patient = Patient.objects.filter(user=actor).first()
        if patient is None:
            raise NotFound('Patient profile not found. Please complete your profile.')
        if data.get('patient') and data['patient'] != patient.pk:
            raise RouteAccessDenied('Patients can only book appointments for themselves')
    else:
        patient = Patient.objects.filter(pk=data.get('patient')).first()
        if patient is None:
            raise NotFound('Patient not found')
    doctor = Doctor.objects.filter(pk=data['doctor']).first()
    if doctor is None:
        raise NotFound('Doctor not found')

    slot = data['timeSlot']
    with transaction.atomic():
        _lock_doctor(doctor.pk)
        ensure_slot_free(doctor.pk, data['appointmentDate'], slot['startTime'])
        appt = Appointment.objects.create(
            appointment_id=next_appointment_id(),
            patient=patient,
            doctor=doctor,
            appointment_date=data['appointmentDate'],
            start_time=slot['startTime'],
            end_time=slot['endTime'],
            type=data.get('type', 'Consultation'),
            priority=data.get('priority', 'Normal'),
            symptoms=data.get('symptoms', []),
            notes=data.get('notes', ''),
            consultation_fee=data.get('consultationFee', doctor.consultation_fee),
            status=Appointment.STATUS_SCHEDULED,
            created_by=actor,
        )
    log_action(user=actor, action='appointment_create', obj=appt,
               detail={'doctor': doctor.pk, 'date': appt.appointment_date.isoformat(), 'start': appt.start_time})
    logger.info('appointment %s booked for doctor %s on %s %s',
                appt.appointment_id, doctor.pk, appt.appointment_date, appt.start_time)
    return appt


def update_appointment(actor, appt: Appointment, data: dict) -> Appointment:
    """Generic patch.  Moving the appointment or reviving a released one re-checks the slot."""
    if actor.role == User.ROLE_DOCTOR and appt.doctor.user_id != actor.id:
        raise RouteAccessDenied('Doctors may only update their own appointments')
    new_date = data.get('appointmentDate', appt.appointment_date)
    slot = data.get('timeSlot') or {'startTime': appt.start_time, 'endTime': appt.end_time}
    new_status = data.get('status', appt.status)
    moved = new_date != appt.appointment_date or slot['startTime'] != appt.start_time
    revived = appt.status in Appointment.RELEASED_STATUSES and new_status not in Appointment.RELEASED_STATUSES

    with transaction.atomic():
        if (moved or revived) and new_status not in Appointment.RELEASED_STATUSES:
            _lock_doctor(appt.doctor_id)
            ensure_slot_free(appt.doctor_id, new_date, slot['startTime'], exclude_pk=appt.pk)
        appt.appointment_date = new_date
        appt.start_time = slot['startTime']
        appt.end_time = slot['endTime']
        for key, field in _UPDATE_FIELDS.items():
            if key in data:
                setattr(appt, field, data[key])
        appt.save()
    log_action(user=actor, action='appointment_update', obj=appt, detail={'fields': sorted(data.keys())})
    return appt


def cancel_appointment(actor, appt: Appointment, reason: str = '') -> Appointment:
    if appt.status == Appointment.STATUS_COMPLETED:
        raise ConflictError('Cannot cancel a completed appointment')
    appt.status = Appointment.STATUS_CANCELLED
    appt.cancel_reason = reason or ''
    appt.save(update_fields=['status', 'cancel_reason', 'updated_at'])
    log_action(user=actor, action='appointment_cancel', obj=appt, detail={'reason': appt.cancel_reason})
    return appt


def reschedule_appointment(actor, appt: Appointment, new_date, slot: dict) -> Appointment:
    if appt.status in Appointment.RELEASED_STATUSES:
        raise ConflictError(f"Cannot reschedule a {appt.status.lower()} appointment")
    with transaction.atomic():
        _lock_doctor(appt.doctor_id)
        ensure_slot_free(appt.doctor_id, new_date, slot['startTime'], exclude_pk=appt.pk)
        appt.appointment_date = new_date
        appt.start_time = slot['startTime']
        appt.end_time = slot['endTime']
        appt.status = Appointment.STATUS_SCHEDULED
        appt.save()
    log_action(user=actor, action='appointment_reschedule', obj=appt,
               detail={'date': new_date.isoformat(), 'start': slot['startTime']})
    return appt


def delete_appointment(actor, appt: Appointment) -> None:
    log_action(user=actor, action='appointment_delete', obj=appt, detail={'appointmentId': appt.appointment_id})
    appt.delete()
