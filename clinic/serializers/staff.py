from decimal import Decimal

from rest_framework import serializers

from clinic.models import Staff
from .common import TIME_RE, CleanCharField, LenientDateField, iso, money, user_brief

ZERO = Decimal('0')


class SalarySerializer(serializers.Serializer):
    basic = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False, default=ZERO)
    allowances = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False,
                                          default=ZERO)


class WorkScheduleSerializer(serializers.Serializer):
    day = serializers.CharField(max_length=16)
    startTime = serializers.RegexField(TIME_RE)
    endTime = serializers.RegexField(TIME_RE)


class CertificationSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    issueDate = LenientDateField(required=False, allow_null=True)
    expiryDate = LenientDateField(required=False, allow_null=True)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return {k: (v.isoformat() if hasattr(v, 'isoformat') else v) for k, v in value.items()}


class StaffSerializer(serializers.Serializer):
    userId = serializers.IntegerField()
    designation = CleanCharField(max_length=120)
    department = CleanCharField(max_length=120)
    qualification = CleanCharField(max_length=255, required=False, allow_blank=True)
    joiningDate = LenientDateField()
    employmentType = serializers.ChoiceField(choices=[c[0] for c in Staff.EMPLOYMENT_CHOICES], required=False)
    shift = serializers.ChoiceField(choices=[c[0] for c in Staff.SHIFT_CHOICES], required=False)
    workSchedule = WorkScheduleSerializer(many=True, required=False)
    salary = SalarySerializer(required=False)
    supervisor = serializers.IntegerField(required=False, allow_null=True)
    skills = serializers.ListField(child=CleanCharField(max_length=120), required=False)
    certifications = CertificationSerializer(many=True, required=False)


class StaffUpdateSerializer(StaffSerializer):
    def get_fields(self):
        fields = super().get_fields()
        fields.pop('userId')
        fields['isActive'] = serializers.BooleanField(required=False)
        for field in fields.values():
            field.required = False
        return fields


class PerformanceSerializer(serializers.Serializer):
    rating = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=ZERO, max_value=Decimal('5'))
    notes = CleanCharField(required=False, allow_blank=True)


class StaffListQuerySerializer(serializers.Serializer):
    department = serializers.CharField(required=False)
    designation = serializers.CharField(required=False)
    employmentType = serializers.ChoiceField(choices=[c[0] for c in Staff.EMPLOYMENT_CHOICES], required=False)
    shift = serializers.ChoiceField(choices=[c[0] for c in Staff.SHIFT_CHOICES], required=False)


def format_staff(s: Staff) -> dict:
    user = user_brief(s.user)
    user['role'] = s.user.role
    return {
        'id': s.id,
        'employeeId': s.employee_id,
        'user': user,
        'designation': s.designation,
        'department': s.department,
        'qualification': s.qualification,
        'joiningDate': iso(s.joining_date),
        'employmentType': s.employment_type,
        'shift': s.shift,
        'workSchedule': s.work_schedule or [],
        'salary': {
            'basic': money(s.salary_basic),
            'allowances': money(s.salary_allowances),
            'total': money(s.salary_total),
        },
        'supervisor': {'id': s.supervisor.id, 'name': s.supervisor.name} if s.supervisor_id else None,
        'skills': s.skills or [],
        'certifications': s.certifications or [],
        'performance': {
            'rating': float(s.performance_rating) if s.performance_rating is not None else None,
            'lastReviewDate': iso(s.performance_review_date),
            'notes': s.performance_notes,
        },
        'isActive': s.is_active,
        'createdAt': iso(s.created_at),
    }
