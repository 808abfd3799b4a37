from rest_framework import serializers

from clinic.models import Admission, Patient, User
from .common import CleanCharField, LenientDateField, iso, user_brief


class EmergencyContactSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255, required=False, allow_blank=True)
    relationship = CleanCharField(max_length=64, required=False, allow_blank=True)
    phone = CleanCharField(max_length=32, required=False, allow_blank=True)


class InsuranceInfoSerializer(serializers.Serializer):
    provider = CleanCharField(max_length=255, required=False, allow_blank=True)
    policyNumber = CleanCharField(max_length=64, required=False, allow_blank=True)
    validUntil = LenientDateField(required=False, allow_null=True)


class PatientCreateSerializer(serializers.Serializer):
    """Either ``userId`` of an existing Patient user, or the account fields."""
    userId = serializers.IntegerField(required=False)
    name = CleanCharField(max_length=255, required=False)
    email = serializers.EmailField(required=False)
    phone = CleanCharField(max_length=32, required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    dateOfBirth = LenientDateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c[0] for c in User.GENDER_CHOICES], required=False, allow_blank=True)
    address = serializers.DictField(required=False)
    bloodGroup = serializers.ChoiceField(
        choices=[c[0] for c in Patient.BLOOD_GROUP_CHOICES], required=False, allow_blank=True
    )
    emergencyContact = EmergencyContactSerializer(required=False)
    allergies = serializers.ListField(child=CleanCharField(max_length=120), required=False)
    insuranceInfo = InsuranceInfoSerializer(required=False)

    def validate(self, attrs):
        if not attrs.get('userId') and not (attrs.get('name') and attrs.get('email')):
            raise serializers.ValidationError('Provide userId or name and email')
        return attrs


class PatientUpdateSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255, required=False)
    phone = CleanCharField(max_length=32, required=False, allow_blank=True)
    dateOfBirth = LenientDateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=[c[0] for c in User.GENDER_CHOICES], required=False, allow_blank=True)
    address = serializers.DictField(required=False)
    bloodGroup = serializers.ChoiceField(
        choices=[c[0] for c in Patient.BLOOD_GROUP_CHOICES], required=False, allow_blank=True
    )
    emergencyContact = EmergencyContactSerializer(required=False)
    allergies = serializers.ListField(child=CleanCharField(max_length=120), required=False)
    currentMedications = serializers.ListField(child=serializers.DictField(), required=False)
    insuranceInfo = InsuranceInfoSerializer(required=False)


class PatientListQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True)
    bloodGroup = serializers.CharField(required=False)


class MedicalHistorySerializer(serializers.Serializer):
    condition = CleanCharField(max_length=255)
    diagnosedDate = LenientDateField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=['Active', 'Resolved', 'Chronic'], default='Active')
    notes = CleanCharField(required=False, allow_blank=True)


class LabReportSerializer(serializers.Serializer):
    testName = CleanCharField(max_length=255)
    date = LenientDateField(required=False, allow_null=True)
    results = CleanCharField(required=False, allow_blank=True)
    fileUrl = serializers.URLField(required=False, allow_blank=True)


def format_admission(a: Admission) -> dict:
    return {
        'id': a.id,
        'wardId': a.ward_id,
        'wardNumber': a.ward.ward_number if a.ward_id else None,
        'bedNumber': a.bed_number,
        'admissionDate': iso(a.admission_date),
        'dischargeDate': iso(a.discharge_date),
        'reason': a.reason,
    }


def format_patient(patient: Patient, with_user: bool = True, with_admissions: bool = False) -> dict:
    data = {
        'id': patient.id,
        'userId': patient.user_id,
        'patientId': patient.patient_id,
        'bloodGroup': patient.blood_group,
        'emergencyContact': patient.emergency_contact or {},
        'medicalHistory': patient.medical_history or [],
        'allergies': patient.allergies or [],
        'currentMedications': patient.current_medications or [],
        'labReports': patient.lab_reports or [],
        'insuranceInfo': patient.insurance_info or {},
        'createdAt': iso(patient.created_at),
    }
    if with_user:
        user = patient.user
        data['user'] = {
            **user_brief(user),
            'dateOfBirth': iso(user.date_of_birth),
            'gender': user.gender,
            'address': user.address or {},
        }
    if with_admissions:
        data['admissionHistory'] = [format_admission(a) for a in patient.admissions.select_related('ward')]
    return data


def patient_brief(patient: Patient | None) -> dict | None:
    if patient is None:
        return None
    return {
        'id': patient.id,
        'patientId': patient.patient_id,
        'name': patient.user.name,
        'phone': patient.user.phone,
    }
