"""
Prescription lifecycle: creation, edits while pending, status changes,
dispensing and refills.

Status moves follow ``TRANSITIONS``; Fulfilled and Cancelled are final.
Dispensing (moving into Partially-Filled or Fulfilled, and every refill)
takes each line's quantity out of stock in one transaction, so either all
lines are served or nothing changes.
"""
from __future__ import annotations

import datetime
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError, RouteAccessDenied
from clinic.models import Appointment, Doctor, Medicine, Patient, Prescription, PrescriptionItem
from clinic.services.audit import log_action
from clinic.services.ids import next_prescription_id
from clinic.services.medicines import check_stock, dispense

logger = logging.getLogger(__name__)

User = get_user_model()

DEFAULT_VALIDITY = datetime.timedelta(days=30)

TRANSITIONS = {
    Prescription.STATUS_PENDING: {
        Prescription.STATUS_PARTIAL, Prescription.STATUS_FULFILLED, Prescription.STATUS_CANCELLED,
    },
    Prescription.STATUS_PARTIAL: {Prescription.STATUS_FULFILLED, Prescription.STATUS_CANCELLED},
    Prescription.STATUS_FULFILLED: set(),
    Prescription.STATUS_CANCELLED: set(),
}
DISPENSING_STATUSES = (Prescription.STATUS_PARTIAL, Prescription.STATUS_FULFILLED)


def _base_qs():
    return Prescription.objects.select_related('patient__user', 'doctor__user', 'appointment')


def get_prescription(actor, pk) -> Prescription:
    p = _base_qs().filter(pk=pk).first()
    if p is None:
        raise NotFound('Prescription not found')
    if actor.role == User.ROLE_PATIENT and p.patient.user_id != actor.id:
        raise RouteAccessDenied('Not authorized to access this prescription')
    return p


def list_prescriptions(actor, *, patient=None, doctor=None, status=None, start=None, end=None):
    qs = _base_qs()
    if actor.role == User.ROLE_PATIENT:
        qs = qs.filter(patient__user=actor)
    if patient:
        qs = qs.filter(patient_id=patient)
    if doctor:
        qs = qs.filter(doctor_id=doctor)
    if status:
        qs = qs.filter(status=status)
    if start:
        qs = qs.filter(created_at__date__gte=start)
    if end:
        qs = qs.filter(created_at__date__lte=end)
    return qs.order_by('-created_at', '-id')


def _resolve_lines(lines: list[dict]) -> list[tuple[Medicine, dict]]:
    ids = {line['medicine'] for line in lines}
    found = Medicine.objects.in_bulk(ids)
    resolved = []
    for line in lines:
        medicine = found.get(line['medicine'])
        if medicine is None:
            raise NotFound(f"Medicine with ID {line['medicine']} not found")
        resolved.append((medicine, line))
    check_stock((m, line['quantity']) for m, line in resolved)
    return resolved


def _write_items(prescription: Prescription, resolved) -> None:
    PrescriptionItem.objects.bulk_create([
        PrescriptionItem(
            prescription=prescription,
            medicine=medicine,
            dosage=line['dosage'],
            frequency=line['frequency'],
            duration=line['duration'],
            instructions=line.get('instructions', ''),
            quantity=line['quantity'],
        )
        for medicine, line in resolved
    ])


def _prescribing_doctor(actor, doctor_pk) -> Doctor:
    if actor.role == User.ROLE_DOCTOR:
        doctor = Doctor.objects.filter(user=actor).first()
        if doctor is None:
            raise NotFound('Doctor profile not found')
        return doctor
    if doctor_pk is None:
        raise ValidationError({'doctor': ['This field is required.']})
    doctor = Doctor.objects.filter(pk=doctor_pk).first()
    if doctor is None:
        raise NotFound('Doctor not found')
    return doctor


def create_prescription(actor, data: dict) -> Prescription:
    patient = Patient.objects.filter(pk=data['patient']).first()
    if patient is None:
        raise NotFound('Patient not found')
    doctor = _prescribing_doctor(actor, data.get('doctor'))
    appointment = None
    if data.get('appointment'):
        appointment = Appointment.objects.filter(pk=data['appointment']).first()
        if appointment is None:
            raise NotFound('Appointment not found')
    resolved = _resolve_lines(data['medicines'])

    with transaction.atomic():
        p = Prescription.objects.create(
            prescription_id=next_prescription_id(),
            patient=patient,
            doctor=doctor,
            appointment=appointment,
            diagnosis=data['diagnosis'],
            symptoms=data.get('symptoms', []),
            lab_tests=data.get('labTests', []),
            refills_allowed=data.get('refillsAllowed', 0),
            valid_until=data.get('validUntil') or timezone.now() + DEFAULT_VALIDITY,
            notes=data.get('notes', ''),
        )
        _write_items(p, resolved)
    log_action(user=actor, action='prescription_create', obj=p,
               detail={'prescriptionId': p.prescription_id, 'lines': len(resolved)})
    return p


def update_prescription(actor, p: Prescription, data: dict) -> Prescription:
    if actor.role == User.ROLE_DOCTOR and p.doctor.user_id != actor.id:
        raise RouteAccessDenied('Doctors may only update their own prescriptions')
    if p.status != Prescription.STATUS_PENDING:
        raise ConflictError('Cannot update prescription that has been processed')
    if 'refillsAllowed' in data and data['refillsAllowed'] < p.refills_used:
        raise ValidationError({'refillsAllowed': ['Cannot be lower than refills already used.']})
    resolved = _resolve_lines(data['medicines']) if 'medicines' in data else None

    with transaction.atomic():
        for key, field in (('diagnosis', 'diagnosis'), ('symptoms', 'symptoms'), ('labTests', 'lab_tests'),
                           ('refillsAllowed', 'refills_allowed'), ('validUntil', 'valid_until'),
                           ('notes', 'notes')):
            if key in data:
                setattr(p, field, data[key])
        p.save()
        if resolved is not None:
            p.items.all().delete()
            _write_items(p, resolved)
    log_action(user=actor, action='prescription_update', obj=p, detail={'fields': sorted(data.keys())})
    return p


def cancel_prescription(actor, p: Prescription) -> Prescription:
    if p.status == Prescription.STATUS_FULFILLED:
        raise ConflictError('Cannot cancel fulfilled prescription')
    p.status = Prescription.STATUS_CANCELLED
    p.save(update_fields=['status', 'updated_at'])
    log_action(user=actor, action='prescription_cancel', obj=p)
    return p


def _lines(p: Prescription):
    return [(item.medicine_id, item.quantity) for item in p.items.all()]


def set_status(actor, pk, new_status: str) -> Prescription:
    with transaction.atomic():
        p = Prescription.objects.select_for_update().filter(pk=pk).first()
        if p is None:
            raise NotFound('Prescription not found')
        if new_status not in TRANSITIONS[p.status]:
            raise ConflictError(f"Cannot change prescription status from {p.status} to {new_status}")
        if new_status in DISPENSING_STATUSES:
            dispense(_lines(p))
        p.status = new_status
        p.save(update_fields=['status', 'updated_at'])
    log_action(user=actor, action='prescription_status', obj=p, detail={'status': new_status})
    if new_status in DISPENSING_STATUSES:
        logger.info('prescription %s dispensed (%s)', p.prescription_id, new_status)
    return p


def refill(actor, pk) -> Prescription:
    with transaction.atomic():
        p = Prescription.objects.select_for_update().filter(pk=pk).first()
        if p is None:
            raise NotFound('Prescription not found')
        if p.refills_used >= p.refills_allowed:
            raise ConflictError(f"No refills remaining. Used: {p.refills_used}/{p.refills_allowed}")
        if p.status == Prescription.STATUS_CANCELLED:
            raise ConflictError('Cannot refill a cancelled prescription')
        if timezone.now() > p.valid_until:
            raise ConflictError('Prescription has expired. Please get a new prescription from doctor.')
        dispense(_lines(p))
        p.refills_used += 1
        if p.refills_used == p.refills_allowed:
            p.status = Prescription.STATUS_FULFILLED
        p.save(update_fields=['refills_used', 'status', 'updated_at'])
    log_action(user=actor, action='prescription_refill', obj=p,
               detail={'refillsUsed': p.refills_used, 'refillsAllowed': p.refills_allowed})
    logger.info('prescription %s refilled (%d/%d)', p.prescription_id, p.refills_used, p.refills_allowed)
    return p


def prescription_stats(*, start=None, end=None) -> dict:
    qs = Prescription.objects.all()
    if start:
        qs = qs.filter(created_at__date__gte=start)
    if end:
        qs = qs.filter(created_at__date__lte=end)
    counts = dict(qs.values_list('status').annotate(n=Count('id')))
    top = (
        PrescriptionItem.objects.filter(prescription__in=qs)
        .values('medicine_id', 'medicine__name', 'medicine__generic_name')
        .annotate(total=Sum('quantity'))
        .order_by('-total', 'medicine_id')[:10]
    )
    return {
        'totalPrescriptions': qs.count(),
        'statusBreakdown': {
            'pending': counts.get(Prescription.STATUS_PENDING, 0),
            'partiallyFilled': counts.get(Prescription.STATUS_PARTIAL, 0),
            'fulfilled': counts.get(Prescription.STATUS_FULFILLED, 0),
            'cancelled': counts.get(Prescription.STATUS_CANCELLED, 0),
        },
        'topMedicines': [
            {
                'medicineId': row['medicine_id'],
                'medicineName': row['medicine__name'],
                'genericName': row['medicine__generic_name'],
                'totalDispensed': row['total'],
            }
            for row in top
        ],
    }
