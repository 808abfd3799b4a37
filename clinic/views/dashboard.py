"""
Role dashboards.

Each endpoint returns a read-only snapshot tailored to one role: an
overview of counts, a few short lists and the quick actions the front
end renders as shortcuts.  Lists are capped so the payload stays small.
"""
from __future__ import annotations

import datetime

from django.contrib.auth import get_user_model
from django.db.models import Sum
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated

from ..models import Appointment, Bill, Doctor, Medicine, Patient, Prescription, Staff, Ward
from ..permissions import ROLE_PERMISSIONS, HasRole
from ..serializers.appointment import format_appointment
from ..serializers.auth import format_user
from ..serializers.billing import format_bill
from ..serializers.common import money
from ..serializers.medicine import format_medicine
from ..serializers.prescription import format_prescription
from ..services.medicines import LOW_STOCK
from .common import ok

User = get_user_model()

OPEN_BILL_STATUSES = (Bill.STATUS_UNPAID, Bill.STATUS_PARTIAL)
UPCOMING_STATUSES = (Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED)
LIVE_STATUSES = UPCOMING_STATUSES + (Appointment.STATUS_IN_PROGRESS,)


def _appointments():
    return Appointment.objects.select_related('patient__user', 'doctor__user')


def _prescriptions():
    return Prescription.objects.select_related('patient__user', 'doctor__user', 'appointment')


def _bed_totals() -> tuple[int, int]:
    beds = Ward.objects.filter(is_active=True).aggregate(total=Sum('total_beds'), available=Sum('available_beds'))
    return beds['total'] or 0, beds['available'] or 0


def _expiring_within(days: int):
    today = timezone.localdate()
    return Medicine.objects.filter(
        is_active=True, expiry_date__gte=today, expiry_date__lte=today + datetime.timedelta(days=days),
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole()])
def admin_dashboard(request):
    today = timezone.localdate()
    total_beds, available = _bed_totals()
    pending_appointments = Appointment.objects.filter(status=Appointment.STATUS_SCHEDULED).count()
    pending_bills = Bill.objects.filter(payment_status__in=OPEN_BILL_STATUSES).count()
    revenue = Bill.objects.filter(bill_date__date=today).aggregate(s=Sum('amount_paid'))['s']
    low_stock = Medicine.objects.filter(LOW_STOCK, is_active=True).count()
    return ok({
        'role': 'Admin',
        'dashboard': {
            'overview': {
                'totalUsers': User.objects.filter(is_active=True).count(),
                'totalDoctors': Doctor.objects.filter(is_available=True).count(),
                'totalPatients': Patient.objects.count(),
                'todayAppointments': Appointment.objects.filter(appointment_date=today).count(),
                'pendingAppointments': pending_appointments,
                'totalBeds': total_beds,
                'availableBeds': available,
                'occupiedBeds': total_beds - available,
                'activeStaff': Staff.objects.filter(is_active=True).count(),
            },
            'alerts': {
                'lowStockMedicines': low_stock,
                'pendingBills': pending_bills,
                'pendingAppointments': pending_appointments,
            },
            'revenue': {'today': money(revenue or 0)},
            'recentActivities': {
                'appointments': [format_appointment(a) for a in _appointments().order_by('-created_at')[:5]],
                'users': [format_user(u) for u in User.objects.filter(is_active=True).order_by('-created_at')[:5]],
            },
        },
        'quickActions': [
            {'label': 'Manage Users', 'route': '/api/auth/users'},
            {'label': 'View All Doctors', 'route': '/api/doctors'},
            {'label': 'View All Patients', 'route': '/api/patients'},
            {'label': 'Manage Appointments', 'route': '/api/appointments'},
            {'label': 'Manage Wards', 'route': '/api/wards'},
            {'label': 'View Reports', 'route': '/api/reports/dashboard'},
            {'label': 'Manage Staff', 'route': '/api/staff'},
            {'label': 'Medicine Inventory', 'route': '/api/medicines'},
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole('Doctor')])
def doctor_dashboard(request):
    doctor = Doctor.objects.filter(user=request.user).first()
    if doctor is None:
        raise NotFound('Doctor profile not found')
    today = timezone.localdate()
    mine = _appointments().filter(doctor=doctor)
    schedule = list(mine.filter(appointment_date=today).order_by('start_time'))
    upcoming = list(
        mine.filter(appointment_date__gte=today, status__in=UPCOMING_STATUSES)
        .order_by('appointment_date', 'start_time')[:10]
    )
    return ok({
        'role': 'Doctor',
        'doctorInfo': {
            'name': request.user.name,
            'specialization': doctor.specialization,
            'department': doctor.department,
            'experience': doctor.experience,
            'rating': float(doctor.rating),
        },
        'dashboard': {
            'overview': {
                'todayAppointments': len(schedule),
                'completedToday': sum(1 for a in schedule if a.status == Appointment.STATUS_COMPLETED),
                'upcomingAppointments': len(upcoming),
                'totalPatients': mine.values('patient_id').distinct().count(),
                'pendingPrescriptions': Prescription.objects.filter(
                    doctor=doctor, status=Prescription.STATUS_PENDING,
                ).count(),
            },
            'todaySchedule': [format_appointment(a) for a in schedule],
            'upcomingAppointments': [format_appointment(a) for a in upcoming[:5]],
            'recentPrescriptions': [
                format_prescription(p) for p in _prescriptions().filter(doctor=doctor).order_by('-created_at')[:5]
            ],
        },
        'quickActions': [
            {'label': 'My Appointments', 'route': f'/api/appointments?doctor={doctor.id}'},
            {'label': 'My Patients', 'route': '/api/patients'},
            {'label': 'Create Prescription', 'route': '/api/prescriptions'},
            {'label': 'View Prescriptions', 'route': f'/api/prescriptions?doctor={doctor.id}'},
            {'label': 'Update Availability', 'route': f'/api/doctors/{doctor.id}/availability'},
        ],
    })


def _age(dob) -> int | None:
    if not dob:
        return None
    today = timezone.localdate()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole('Patient')])
def patient_dashboard(request):
    patient = Patient.objects.select_related('user').filter(user=request.user).first()
    if patient is None:
        raise NotFound('Patient profile not found. Please complete your profile.')
    today = timezone.localdate()
    mine = _appointments().filter(patient=patient)
    upcoming = list(
        mine.filter(appointment_date__gte=today, status__in=UPCOMING_STATUSES).order_by('appointment_date', 'start_time')
    )
    recent = list(mine.filter(status=Appointment.STATUS_COMPLETED).order_by('-appointment_date')[:5])
    active_rx = list(
        _prescriptions().filter(
            patient=patient, status__in=(Prescription.STATUS_PENDING, Prescription.STATUS_PARTIAL),
        ).order_by('-created_at')
    )
    open_bills = list(
        Bill.objects.select_related('patient__user', 'generated_by')
        .filter(patient=patient, payment_status__in=OPEN_BILL_STATUSES).order_by('-bill_date')
    )
    return ok({
        'role': 'Patient',
        'patientInfo': {
            'patientId': patient.patient_id,
            'name': request.user.name,
            'bloodGroup': patient.blood_group,
            'age': _age(request.user.date_of_birth),
        },
        'dashboard': {
            'overview': {
                'upcomingAppointments': len(upcoming),
                'activePrescriptions': len(active_rx),
                'unpaidBills': len(open_bills),
                'totalUnpaidAmount': money(sum(b.balance for b in open_bills)),
            },
            'upcomingAppointments': [format_appointment(a) for a in upcoming],
            'recentVisits': [format_appointment(a) for a in recent],
            'activePrescriptions': [format_prescription(p) for p in active_rx],
            'pendingBills': [format_bill(b) for b in open_bills],
        },
        'quickActions': [
            {'label': 'Book Appointment', 'route': '/api/appointments'},
            {'label': 'View Doctors', 'route': '/api/doctors'},
            {'label': 'My Appointments', 'route': f'/api/appointments?patient={patient.id}'},
            {'label': 'My Prescriptions', 'route': f'/api/prescriptions?patient={patient.id}'},
            {'label': 'My Bills', 'route': f'/api/billing?patient={patient.id}'},
            {'label': 'Medical History', 'route': f'/api/patients/{patient.id}'},
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole('Nurse')])
def nurse_dashboard(request):
    today = timezone.localdate()
    wards = list(Ward.objects.filter(is_active=True).order_by('ward_number'))
    critical = list(
        _appointments().filter(priority='Emergency', status__in=LIVE_STATUSES).order_by('appointment_date')[:10]
    )
    return ok({
        'role': 'Nurse',
        'nurseInfo': {'name': request.user.name},
        'dashboard': {
            'overview': {
                'todayAppointments': Appointment.objects.filter(appointment_date=today).count(),
                'totalWards': len(wards),
                'occupiedBeds': sum(w.total_beds - w.available_beds for w in wards),
                'availableBeds': sum(w.available_beds for w in wards),
                'criticalPatients': len(critical),
                'pendingAdmissions': Appointment.objects.filter(
                    type='Emergency', status=Appointment.STATUS_SCHEDULED,
                ).count(),
            },
            'wardOccupancy': [
                {
                    'id': w.id,
                    'wardNumber': w.ward_number,
                    'wardName': w.ward_name,
                    'wardType': w.ward_type,
                    'totalBeds': w.total_beds,
                    'availableBeds': w.available_beds,
                }
                for w in wards
            ],
            'criticalPatients': [format_appointment(a) for a in critical],
        },
        'quickActions': [
            {'label': 'View Wards', 'route': '/api/wards'},
            {'label': 'Manage Beds', 'route': '/api/wards'},
            {'label': 'View Patients', 'route': '/api/patients'},
            {'label': 'Today Appointments', 'route': f'/api/appointments?date={today.isoformat()}'},
            {'label': 'Emergency Cases', 'route': '/api/appointments?priority=Emergency'},
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole('Receptionist')])
def receptionist_dashboard(request):
    today = timezone.localdate()
    schedule = list(_appointments().filter(appointment_date=today).order_by('start_time'))
    return ok({
        'role': 'Receptionist',
        'receptionistInfo': {'name': request.user.name},
        'dashboard': {
            'overview': {
                'todayAppointments': len(schedule),
                'pendingAppointments': Appointment.objects.filter(status=Appointment.STATUS_SCHEDULED).count(),
                'availableDoctors': Doctor.objects.filter(is_available=True).count(),
                'pendingBills': Bill.objects.filter(payment_status__in=OPEN_BILL_STATUSES).count(),
                'todayRegistrations': Patient.objects.filter(created_at__date=today).count(),
            },
            'todaySchedule': [format_appointment(a) for a in schedule],
        },
        'quickActions': [
            {'label': 'Register Patient', 'route': '/api/patients'},
            {'label': 'Book Appointment', 'route': '/api/appointments'},
            {'label': 'View Appointments', 'route': '/api/appointments'},
            {'label': 'Generate Bill', 'route': '/api/billing'},
            {'label': 'View Doctors', 'route': '/api/doctors'},
            {'label': 'Check Ward Availability', 'route': '/api/wards?available=true'},
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRole('Pharmacist')])
def pharmacist_dashboard(request):
    today = timezone.localdate()
    pending = list(_prescriptions().filter(status=Prescription.STATUS_PENDING).order_by('-created_at')[:10])
    low = list(Medicine.objects.filter(LOW_STOCK, is_active=True).order_by('stock_quantity')[:10])
    expiring = list(_expiring_within(30).order_by('expiry_date')[:10])
    return ok({
        'role': 'Pharmacist',
        'pharmacistInfo': {'name': request.user.name},
        'dashboard': {
            'overview': {
                'pendingPrescriptions': len(pending),
                'lowStockMedicines': len(low),
                'expiringMedicines': len(expiring),
                'todayDispensed': Prescription.objects.filter(
                    status=Prescription.STATUS_FULFILLED, updated_at__date=today,
                ).count(),
                'totalMedicines': Medicine.objects.filter(is_active=True).count(),
            },
            'pendingPrescriptions': [format_prescription(p) for p in pending],
            'lowStockAlerts': [format_medicine(m) for m in low],
            'expiringAlerts': [format_medicine(m) for m in expiring],
        },
        'quickActions': [
            {'label': 'View Prescriptions', 'route': '/api/prescriptions?status=Pending'},
            {'label': 'Medicine Inventory', 'route': '/api/medicines'},
            {'label': 'Low Stock Medicines', 'route': '/api/medicines/alerts/low-stock'},
            {'label': 'Expiring Medicines', 'route': '/api/medicines/alerts/expiring'},
            {'label': 'Add Medicine', 'route': '/api/medicines'},
            {'label': 'Update Stock', 'route': '/api/medicines'},
        ],
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_permissions(request):
    role = request.user.role
    entry = ROLE_PERMISSIONS.get(role)
    if entry is None:
        raise NotFound('Invalid role')
    return ok({
        'role': role,
        'dashboard': entry['dashboard'],
        'canAccess': entry['canAccess'],
        'routes': entry['routes'],
    })
