"""
Ward and bed bookkeeping.

``Ward.available_beds`` is a cached count of unoccupied beds.  Every
operation that moves a patient in or out of a bed locks the ward row,
changes the bed and recounts inside the same transaction, so the cached
value always matches the beds table.
"""
from __future__ import annotations

import logging
from collections import defaultdict

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError
from clinic.models import Admission, Bed, Patient, Ward
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

User = get_user_model()

_UPDATE_FIELDS = {
    'wardName': 'ward_name',
    'wardType': 'ward_type',
    'department': 'department',
    'floor': 'floor',
    'gender': 'gender',
    'facilities': 'facilities',
    'dailyRate': 'daily_rate',
    'isActive': 'is_active',
}


def get_ward(pk) -> Ward:
    ward = Ward.objects.select_related('nurse_in_charge').filter(pk=pk).first()
    if ward is None:
        raise NotFound('Ward not found')
    return ward


def _lock_ward(pk) -> Ward:
    ward = Ward.objects.select_for_update().filter(pk=pk).first()
    if ward is None:
        raise NotFound('Ward not found')
    return ward


def _recount(ward: Ward) -> None:
    ward.available_beds = ward.beds.filter(is_occupied=False).count()
    ward.save(update_fields=['available_beds'])


def _resolve_nurse(user_id):
    if user_id is None:
        return None
    nurse = User.objects.filter(pk=user_id).first()
    if nurse is None:
        raise NotFound('Nurse not found')
    if nurse.role not in (User.ROLE_NURSE, User.ROLE_ADMIN):
        raise ValidationError('nurseInCharge must be a Nurse')
    return nurse


def list_wards(*, ward_type=None, department=None, floor=None, available=None):
    qs = Ward.objects.select_related('nurse_in_charge').filter(is_active=True)
    if ward_type:
        qs = qs.filter(ward_type=ward_type)
    if department:
        qs = qs.filter(department__iexact=department)
    if floor is not None:
        qs = qs.filter(floor=floor)
    if available:
        qs = qs.filter(available_beds__gt=0)
    return qs.order_by('ward_number')


@transaction.atomic
def create_ward(actor, data: dict) -> Ward:
    if Ward.objects.filter(ward_number=data['wardNumber']).exists():
        raise ConflictError('Ward number already exists')
    total = data['totalBeds']
    ward = Ward.objects.create(
        ward_number=data['wardNumber'],
        ward_name=data['wardName'],
        ward_type=data['wardType'],
        department=data.get('department', ''),
        floor=data.get('floor', 0),
        total_beds=total,
        available_beds=total,
        gender=data.get('gender', ''),
        facilities=data.get('facilities', []),
        daily_rate=data['dailyRate'],
        nurse_in_charge=_resolve_nurse(data.get('nurseInCharge')),
    )
    Bed.objects.bulk_create([
        Bed(ward=ward, bed_number=f"{ward.ward_number}-{n:02d}") for n in range(1, total + 1)
    ])
    log_action(user=actor, action='ward_create', obj=ward, detail={'totalBeds': total})
    return ward


@transaction.atomic
def update_ward(actor, ward: Ward, data: dict) -> Ward:
    if data.get('isActive') is False:
        locked = _lock_ward(ward.pk)
        if locked.beds.filter(is_occupied=True).exists():
            raise ConflictError('Cannot deactivate ward with occupied beds')
    for key, field in _UPDATE_FIELDS.items():
        if key in data:
            setattr(ward, field, data[key])
    if 'nurseInCharge' in data:
        ward.nurse_in_charge = _resolve_nurse(data['nurseInCharge'])
    ward.save()
    log_action(user=actor, action='ward_update', obj=ward, detail={'fields': sorted(data.keys())})
    return ward


@transaction.atomic
def delete_ward(actor, pk) -> None:
    ward = _lock_ward(pk)
    if ward.available_beds != ward.total_beds or ward.beds.filter(is_occupied=True).exists():
        raise ConflictError('Cannot delete ward with occupied beds')
    log_action(user=actor, action='ward_delete', obj=ward, detail={'wardNumber': ward.ward_number})
    ward.delete()


def allocate_bed(actor, ward_pk, *, patient_pk, admission_date=None, expected_discharge_date=None,
                 reason: str = '') -> tuple[Ward, Bed]:
    """Put the patient into the first free bed of the ward."""
    with transaction.atomic():
        ward = _lock_ward(ward_pk)
        if not ward.is_active:
            raise ConflictError('Ward is not active')
        patient = Patient.objects.select_related('user').filter(pk=patient_pk).first()
        if patient is None:
            raise NotFound('Patient not found')
        if Bed.objects.filter(patient=patient, is_occupied=True).exists():
            raise ConflictError('Patient already occupies a bed')

        bed = ward.beds.filter(is_occupied=False).order_by('id').first()
        if ward.available_beds == 0 or bed is None:
            raise ConflictError('No beds available')

        admitted_at = admission_date or timezone.now()
        bed.is_occupied = True
        bed.patient = patient
        bed.admission_date = admitted_at
        bed.expected_discharge_date = expected_discharge_date
        bed.save()
        _recount(ward)
        Admission.objects.create(
            patient=patient,
            ward=ward,
            bed_number=bed.bed_number,
            admission_date=admitted_at,
            reason=reason or '',
        )
    log_action(user=actor, action='bed_allocate', obj=ward,
               detail={'bed': bed.bed_number, 'patient': patient.patient_id})
    logger.info('bed %s allocated to %s', bed.bed_number, patient.patient_id)
    return ward, bed


def release_bed(actor, ward_pk, *, bed_number: str) -> Ward:
    with transaction.atomic():
        ward = _lock_ward(ward_pk)
        bed = ward.beds.filter(bed_number=bed_number).first()
        if bed is None or not bed.is_occupied:
            raise ValidationError('Bed not found or not occupied')
        patient = bed.patient
        bed.is_occupied = False
        bed.patient = None
        bed.admission_date = None
        bed.expected_discharge_date = None
        bed.save()
        _recount(ward)
        if patient is not None:
            admission = (
                Admission.objects.select_for_update()
                .filter(patient=patient, discharge_date__isnull=True)
                .order_by('-admission_date', '-id')
                .first()
            )
            if admission is not None:
                admission.discharge_date = timezone.now()
                admission.save(update_fields=['discharge_date'])
    log_action(user=actor, action='bed_release', obj=ward,
               detail={'bed': bed_number, 'patient': patient.patient_id if patient else None})
    logger.info('bed %s released', bed_number)
    return ward


def ward_stats() -> dict:
    wards = list(Ward.objects.filter(is_active=True))
    by_type: dict[str, dict] = defaultdict(lambda: {'count': 0, 'totalBeds': 0, 'availableBeds': 0, 'occupied': 0})
    for w in wards:
        row = by_type[w.ward_type]
        row['count'] += 1
        row['totalBeds'] += w.total_beds
        row['availableBeds'] += w.available_beds
        row['occupied'] += w.total_beds - w.available_beds
    total = sum(w.total_beds for w in wards)
    available = sum(w.available_beds for w in wards)
    return {
        'totalWards': len(wards),
        'totalBeds': total,
        'availableBeds': available,
        'occupiedBeds': total - available,
        'occupancyRate': round((total - available) / total * 100, 2) if total else 0,
        'byType': dict(by_type),
    }
