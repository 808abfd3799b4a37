"""Staff records for nurses, receptionists and pharmacists."""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError
from clinic.models import Staff
from clinic.services.audit import log_action
from clinic.services.ids import next_employee_id

User = get_user_model()

STAFF_ROLES = (User.ROLE_NURSE, User.ROLE_RECEPTIONIST, User.ROLE_PHARMACIST)

_FIELDS = {
    'designation': 'designation',
    'department': 'department',
    'qualification': 'qualification',
    'joiningDate': 'joining_date',
    'employmentType': 'employment_type',
    'shift': 'shift',
    'workSchedule': 'work_schedule',
    'skills': 'skills',
    'certifications': 'certifications',
    'isActive': 'is_active',
}


def _base_qs():
    return Staff.objects.select_related('user', 'supervisor')


def get_staff(pk) -> Staff:
    s = _base_qs().filter(pk=pk).first()
    if s is None:
        raise NotFound('Staff member not found')
    return s


def list_staff(*, department=None, designation=None, employment_type=None, shift=None):
    qs = _base_qs().filter(is_active=True)
    if department:
        qs = qs.filter(department__iexact=department)
    if designation:
        qs = qs.filter(designation__iexact=designation)
    if employment_type:
        qs = qs.filter(employment_type=employment_type)
    if shift:
        qs = qs.filter(shift=shift)
    return qs.order_by('employee_id')


def available_users():
    return (
        User.objects.filter(role__in=STAFF_ROLES, is_active=True, staff_record__isnull=True)
        .order_by('name')
    )


def _resolve_supervisor(user_id):
    if user_id is None:
        return None
    supervisor = User.objects.filter(pk=user_id).first()
    if supervisor is None:
        raise NotFound('Supervisor not found')
    return supervisor


def _apply(s: Staff, data: dict) -> None:
    for key, field in _FIELDS.items():
        if key in data:
            setattr(s, field, data[key])
    if 'salary' in data:
        s.salary_basic = data['salary'].get('basic', s.salary_basic)
        s.salary_allowances = data['salary'].get('allowances', s.salary_allowances)
    if 'supervisor' in data:
        s.supervisor = _resolve_supervisor(data['supervisor'])


@transaction.atomic
def create_staff(actor, data: dict) -> Staff:
    user = User.objects.filter(pk=data['userId']).first()
    if user is None:
        raise NotFound('User not found')
    if user.role not in STAFF_ROLES:
        raise ValidationError(f"User role {user.role} cannot hold a staff record")
    if Staff.objects.filter(user=user).exists():
        raise ConflictError('Staff profile already exists for this user')
    s = Staff(user=user, employee_id=next_employee_id())
    _apply(s, data)
    s.save()
    log_action(user=actor, action='staff_create', obj=s, detail={'employeeId': s.employee_id})
    return s


def update_staff(actor, s: Staff, data: dict) -> Staff:
    _apply(s, data)
    s.save()
    log_action(user=actor, action='staff_update', obj=s, detail={'fields': sorted(data.keys())})
    return s


def deactivate_staff(actor, s: Staff) -> None:
    s.is_active = False
    s.save(update_fields=['is_active'])
    log_action(user=actor, action='staff_deactivate', obj=s)


def update_performance(actor, s: Staff, rating, notes: str = '') -> Staff:
    s.performance_rating = rating
    s.performance_review_date = timezone.now()
    s.performance_notes = notes or ''
    s.save(update_fields=['performance_rating', 'performance_review_date', 'performance_notes'])
    log_action(user=actor, action='staff_performance', obj=s, detail={'rating': str(rating)})
    return s


def staff_stats() -> dict:
    active = Staff.objects.filter(is_active=True)

    def breakdown(field, key):
        return [
            {key: row[field], 'count': row['count']}
            for row in active.values(field).annotate(count=Count('id')).order_by(field)
        ]

    return {
        'totalStaff': active.count(),
        'byDepartment': breakdown('department', 'department'),
        'byShift': breakdown('shift', 'shift'),
        'byEmploymentType': breakdown('employment_type', 'employmentType'),
    }
