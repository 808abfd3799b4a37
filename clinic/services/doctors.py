from __future__ import annotations

from datetime import date
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError, RouteAccessDenied
from clinic.models import Appointment, Doctor
from clinic.services.audit import log_action

User = get_user_model()

SLOT_MINUTES = 30

_FIELD_MAP = {
    'specialization': 'specialization',
    'qualification': 'qualification',
    'experience': 'experience',
    'licenseNumber': 'license_number',
    'department': 'department',
    'consultationFee': 'consultation_fee',
    'isAvailable': 'is_available',
    'rating': 'rating',
    'availability': 'availability',
}


def get_doctor(pk) -> Doctor:
    doctor = Doctor.objects.select_related('user').filter(pk=pk).first()
    if doctor is None:
        raise NotFound('Doctor not found')
    return doctor


def list_doctors(*, specialization: Optional[str] = None, department: Optional[str] = None,
                 is_available: Optional[bool] = None, search: Optional[str] = None):
    qs = Doctor.objects.select_related('user').filter(user__is_active=True)
    if specialization:
        qs = qs.filter(specialization__icontains=specialization)
    if department:
        qs = qs.filter(department__iexact=department)
    if is_available is not None:
        qs = qs.filter(is_available=is_available)
    if search:
        qs = qs.filter(Q(user__name__icontains=search) | Q(specialization__icontains=search))
    return qs.order_by('user__name', 'id')


def available_doctor_users():
    """Doctor-role accounts that have no doctor profile yet."""
    return User.objects.filter(role=User.ROLE_DOCTOR, is_active=True, doctor_profile__isnull=True).order_by('name')


def schedule(doctor: Doctor) -> dict:
    return {
        'id': doctor.id,
        'name': doctor.user.name,
        'email': doctor.user.email,
        'availability': doctor.availability or [],
        'onCallShifts': doctor.on_call_shifts or [],
    }


def doctor_appointments(actor, doctor: Doctor):
    """Newest first.  Patients only see their own bookings with the doctor."""
    qs = Appointment.objects.select_related('patient__user', 'doctor__user').filter(doctor=doctor)
    if actor.role == User.ROLE_PATIENT:
        qs = qs.filter(patient__user=actor)
    return qs.order_by('-appointment_date', '-start_time', '-id')


def _jsonable_availability(days: list[dict]) -> list[dict]:
    return [
        {'day': d['day'], 'slots': [dict(s) for s in d.get('slots', [])]}
        for d in days
    ]


def create_doctor(actor, *, user_id: int, data: dict) -> Doctor:
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found')
    if user.role != User.ROLE_DOCTOR:
        raise ValidationError('User must have the Doctor role')
    if Doctor.objects.filter(user=user).exists():
        raise ConflictError('Doctor profile already exists for this user')
    if Doctor.objects.filter(license_number=data['licenseNumber']).exists():
        raise ConflictError('License number already registered')

    doctor = Doctor(user=user)
    for key, field in _FIELD_MAP.items():
        if key in data:
            setattr(doctor, field, data[key])
    doctor.availability = _jsonable_availability(data.get('availability') or [])
    doctor.save()
    log_action(user=actor, action='doctor_create', obj=doctor)
    return doctor


def update_doctor(actor, doctor: Doctor, data: dict) -> Doctor:
    license_number = data.get('licenseNumber')
    if license_number and Doctor.objects.filter(license_number=license_number).exclude(pk=doctor.pk).exists():
        raise ConflictError('License number already registered')
    for key, field in _FIELD_MAP.items():
        if key in data and key != 'availability':
            setattr(doctor, field, data[key])
    doctor.save()
    log_action(user=actor, action='doctor_update', obj=doctor, detail={'fields': sorted(data.keys())})
    return doctor


@transaction.atomic
def deactivate_doctor(actor, doctor: Doctor) -> None:
    """Appointments and prescriptions keep pointing at the profile; the account is switched off."""
    doctor.is_available = False
    doctor.save(update_fields=['is_available'])
    doctor.user.is_active = False
    doctor.user.save(update_fields=['is_active'])
    log_action(user=actor, action='doctor_deactivate', obj=doctor)


def set_availability(actor, doctor: Doctor, availability: list[dict]) -> Doctor:
    if actor.role == User.ROLE_DOCTOR and doctor.user_id != actor.id:
        raise RouteAccessDenied('Doctors may only update their own availability')
    doctor.availability = _jsonable_availability(availability)
    doctor.save(update_fields=['availability'])
    log_action(user=actor, action='doctor_availability', obj=doctor)
    return doctor


def add_on_call_shift(actor, doctor: Doctor, shift: dict) -> Doctor:
    entry = {
        'date': shift['date'].isoformat(),
        'startTime': shift['startTime'],
        'endTime': shift['endTime'],
    }
    doctor.on_call_shifts = [*(doctor.on_call_shifts or []), entry]
    doctor.save(update_fields=['on_call_shifts'])
    log_action(user=actor, action='doctor_oncall', obj=doctor, detail=entry)
    return doctor


def _to_minutes(hhmm: str) -> int:
    h, m = hhmm.split(':')
    return int(h) * 60 + int(m)


def _to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def free_slots(doctor: Doctor, day: date) -> list[dict]:
    """Split the doctor's working slots for ``day`` into 30-minute pieces not yet booked."""
    weekday = day.strftime('%A')
    booked = set(
        Appointment.objects.filter(doctor=doctor, appointment_date=day)
        .exclude(status__in=Appointment.RELEASED_STATUSES)
        .values_list('start_time', flat=True)
    )
    slots: list[dict] = []
    for entry in doctor.availability or []:
        if entry.get('day') != weekday:
            continue
        for window in entry.get('slots', []):
            if not window.get('isAvailable', True):
                continue
            start, end = _to_minutes(window['startTime']), _to_minutes(window['endTime'])
            while start + SLOT_MINUTES <= end:
                begin = _to_hhmm(start)
                if begin not in booked:
                    slots.append({'startTime': begin, 'endTime': _to_hhmm(start + SLOT_MINUTES)})
                start += SLOT_MINUTES
    return sorted(slots, key=lambda s: s['startTime'])
