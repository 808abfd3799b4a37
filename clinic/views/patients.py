"""
Patient record endpoints.

Staff roles browse and maintain patient records; a patient may only
read their own.  Medical history entries and lab reports are appended
by doctors and nurses and count as updates of the patient record.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import HasRole, RouteAccess
from ..serializers.appointment import format_appointment
from ..serializers.auth import format_user
from ..serializers.common import PageQuerySerializer, money
from ..serializers.patient import (
    LabReportSerializer,
    MedicalHistorySerializer,
    PatientCreateSerializer,
    PatientListQuerySerializer,
    PatientUpdateSerializer,
    format_admission,
    format_patient,
)
from ..services import patients as svc
from .common import ok, paginate


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('patients')])
def patients(request):
    if request.method == 'POST':
        s = PatientCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        patient, initial_password = svc.create_patient(request.user, s.validated_data)
        extra = {'message': 'Patient profile created successfully'}
        if initial_password:
            extra['initialPassword'] = initial_password
        return ok(format_patient(patient), status=201, **extra)

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    qs = svc.list_patients(
        request.user,
        search=q.validated_data.get('search'),
        blood_group=q.validated_data.get('bloodGroup'),
    )
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_patient(x) for x in rows], **meta)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('patients', 'POST'), HasRole('Receptionist')])
def available_users(request):
    """Patient-role users that have no patient record yet."""
    users = [format_user(u) for u in svc.available_patient_users()]
    return ok(users, count=len(users))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('patients')])
def patient_detail(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    if request.method == 'GET':
        return ok(format_patient(patient, with_admissions=True))
    if request.method == 'DELETE':
        svc.deactivate_patient(request.user, patient)
        return ok({}, message='Patient deactivated')
    s = PatientUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient = svc.update_patient(request.user, patient, s.validated_data)
    return ok(format_patient(patient))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('patients')])
def medical_records(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    return ok({
        'patientId': patient.patient_id,
        'medicalHistory': patient.medical_history or [],
        'labReports': patient.lab_reports or [],
        'allergies': patient.allergies or [],
        'currentMedications': patient.current_medications or [],
        'admissionHistory': [format_admission(a) for a in patient.admissions.select_related('ward')],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('patients'), RouteAccess('appointments')])
def patient_appointments(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    qs = patient.appointments.select_related('doctor__user', 'patient__user').order_by('-appointment_date', '-start_time')
    data = [format_appointment(a) for a in qs]
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('patients')])
def patient_stats(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    stats = svc.patient_stats(patient)
    for key in ('totalBilled', 'totalPaid', 'outstandingBalance'):
        stats[key] = money(stats[key])
    return ok({'patient': format_patient(patient), 'stats': stats})


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('patients', 'PUT'), HasRole('Doctor', 'Nurse')])
def medical_history(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    s = MedicalHistorySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    entry = svc.add_medical_history(request.user, patient, s.validated_data)
    return ok(entry, status=201)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('patients', 'PUT'), HasRole('Doctor', 'Nurse')])
def medical_history_detail(request, pk: int, entry_id: str):
    patient = svc.get_patient(request.user, pk)
    if request.method == 'DELETE':
        svc.delete_medical_history(request.user, patient, entry_id)
        return ok({})
    s = MedicalHistorySerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    entry = svc.update_medical_history(request.user, patient, entry_id, s.validated_data)
    return ok(entry)


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('patients', 'PUT'), HasRole('Doctor', 'Nurse')])
def lab_report(request, pk: int):
    patient = svc.get_patient(request.user, pk)
    s = LabReportSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = svc.add_lab_report(request.user, patient, s.validated_data)
    return ok(report, status=201)
