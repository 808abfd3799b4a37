import secrets
import uuid
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q, Sum
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError, RouteAccessDenied
from clinic.models import Appointment, Bill, Patient, Prescription
from clinic.services.accounts import register_user
from clinic.services.audit import log_action
from clinic.services.ids import new_patient_id

User = get_user_model()

_USER_FIELDS = {
    'name': 'name',
    'phone': 'phone',
    'dateOfBirth': 'date_of_birth',
    'gender': 'gender',
    'address': 'address',
}
_PROFILE_FIELDS = {
    'bloodGroup': 'blood_group',
    'emergencyContact': 'emergency_contact',
    'allergies': 'allergies',
    'currentMedications': 'current_medications',
    'insuranceInfo': 'insurance_info',
}


def plain(value):
    """Make validated data JSON-column friendly (dates become ISO strings)."""
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [plain(v) for v in value]
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def get_patient(actor, pk) -> Patient:
    """Load a patient; patients may only load their own record."""
    patient = Patient.objects.select_related('user').filter(pk=pk).first()
    if patient is None:
        raise NotFound('Patient not found')
    if actor.role == User.ROLE_PATIENT and patient.user_id != actor.id:
        raise RouteAccessDenied('Not authorized to access this patient')
    return patient


def own_patient(user) -> Patient:
    patient = Patient.objects.select_related('user').filter(user=user).first()
    if patient is None:
        raise NotFound('Patient profile not found. Please complete your profile.')
    return patient


def list_patients(actor, *, search=None, blood_group=None):
    qs = Patient.objects.select_related('user').filter(user__is_active=True)
    if actor.role == User.ROLE_PATIENT:
        qs = qs.filter(user=actor)
    if blood_group:
        qs = qs.filter(blood_group=blood_group)
    if search:
        qs = qs.filter(
            Q(patient_id__icontains=search)
            | Q(user__name__icontains=search)
            | Q(user__email__icontains=search)
            | Q(user__phone__icontains=search)
        )
    return qs.order_by('-created_at', '-id')


def available_patient_users():
    return User.objects.filter(role=User.ROLE_PATIENT, is_active=True, patient_profile__isnull=True).order_by('name')


def create_patient(actor, data: dict):
    """Create a patient profile, creating the user account too when needed.

    Returns ``(patient, initial_password)``; the password is only set when
    one was generated for a brand new account.
    """
    initial_password = None
    with transaction.atomic():
        if data.get('userId'):
            user = User.objects.filter(pk=data['userId']).first()
            if user is None or user.role != User.ROLE_PATIENT:
                raise ValidationError('Invalid user or not a patient')
            if Patient.objects.filter(user=user).exists():
                raise ConflictError('Patient profile already exists for this user')
            patient = Patient.objects.create(user=user, patient_id=new_patient_id())
        else:
            password = data.get('password') or None
            if not password:
                password = initial_password = secrets.token_urlsafe(12)
            user = register_user(
                actor=actor,
                name=data['name'],
                email=data['email'],
                password=password,
                role=User.ROLE_PATIENT,
                phone=data.get('phone', ''),
                address=data.get('address'),
                date_of_birth=data.get('dateOfBirth'),
                gender=data.get('gender', ''),
            )
            patient = user.patient_profile

        for key, field in _PROFILE_FIELDS.items():
            if key in data:
                setattr(patient, field, plain(data[key]))
        patient.save()
    log_action(user=actor, action='patient_create', obj=patient)
    return patient, initial_password


def update_patient(actor, patient: Patient, data: dict) -> Patient:
    user_changed = []
    for key, field in _USER_FIELDS.items():
        if key in data:
            setattr(patient.user, field, data[key])
            user_changed.append(field)
    for key, field in _PROFILE_FIELDS.items():
        if key in data:
            setattr(patient, field, plain(data[key]))
    with transaction.atomic():
        if user_changed:
            patient.user.save(update_fields=user_changed)
        patient.save()
    log_action(user=actor, action='patient_update', obj=patient, detail={'fields': sorted(data.keys())})
    return patient


def deactivate_patient(actor, patient: Patient) -> None:
    """Patients keep their clinical records; only the account is switched off."""
    if patient.beds.filter(is_occupied=True).exists():
        raise ConflictError('Patient is currently admitted to a ward')
    patient.user.is_active = False
    patient.user.save(update_fields=['is_active'])
    log_action(user=actor, action='patient_deactivate', obj=patient)


def add_medical_history(actor, patient: Patient, entry: dict) -> dict:
    item = {'id': uuid.uuid4().hex, **plain(entry)}
    patient.medical_history = [*(patient.medical_history or []), item]
    patient.save(update_fields=['medical_history'])
    log_action(user=actor, action='medical_history_add', obj=patient, detail={'entry': item['id']})
    return item


def _find_entry(entries: list, entry_id: str) -> int:
    for index, item in enumerate(entries):
        if item.get('id') == entry_id:
            return index
    raise NotFound('Medical history entry not found')


def update_medical_history(actor, patient: Patient, entry_id: str, changes: dict) -> dict:
    entries = list(patient.medical_history or [])
    index = _find_entry(entries, entry_id)
    entries[index] = {**entries[index], **plain(changes), 'id': entry_id}
    patient.medical_history = entries
    patient.save(update_fields=['medical_history'])
    log_action(user=actor, action='medical_history_update', obj=patient, detail={'entry': entry_id})
    return entries[index]


def delete_medical_history(actor, patient: Patient, entry_id: str) -> None:
    entries = list(patient.medical_history or [])
    del entries[_find_entry(entries, entry_id)]
    patient.medical_history = entries
    patient.save(update_fields=['medical_history'])
    log_action(user=actor, action='medical_history_delete', obj=patient, detail={'entry': entry_id})


def add_lab_report(actor, patient: Patient, report: dict) -> dict:
    item = {'id': uuid.uuid4().hex, **plain(report)}
    patient.lab_reports = [*(patient.lab_reports or []), item]
    patient.save(update_fields=['lab_reports'])
    log_action(user=actor, action='lab_report_add', obj=patient, detail={'report': item['id']})
    return item


def patient_stats(patient: Patient) -> dict:
    appointments = Appointment.objects.filter(patient=patient)
    by_status = {status: 0 for status, _ in Appointment.STATUS_CHOICES}
    for row in appointments.values('status').order_by().annotate(n=Count('id')):
        by_status[row['status']] = row['n']
    totals = Bill.objects.filter(patient=patient).aggregate(billed=Sum('total_amount'), paid=Sum('amount_paid'))
    billed = totals['billed'] or Decimal('0')
    paid = totals['paid'] or Decimal('0')
    return {
        'totalAppointments': appointments.count(),
        'appointmentsByStatus': by_status,
        'totalPrescriptions': Prescription.objects.filter(patient=patient).count(),
        'totalBilled': billed,
        'totalPaid': paid,
        'outstandingBalance': billed - paid,
        'medicalHistoryCount': len(patient.medical_history or []),
        'labReportsCount': len(patient.lab_reports or []),
        'allergiesCount': len(patient.allergies or []),
    }
