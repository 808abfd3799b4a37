import datetime
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from clinic.models import Doctor, Medicine, Patient, User, Ward
from clinic.services.wards import create_ward

PASSWORD = 'P@ssw0rd1'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


def make_user(role, email=None, name=None, **extra):
    email = email or f"{role.lower()}{User.objects.count() + 1}@hospital.test"
    return User.objects.create_user(
        email=email, password=PASSWORD, name=name or f"{role} User", role=role, phone='5550100', **extra
    )


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def anon():
    return APIClient()


@pytest.fixture
def admin_user(db):
    return make_user(User.ROLE_ADMIN, email='admin@hospital.test', name='Ada Admin')


@pytest.fixture
def doctor(db):
    user = make_user(User.ROLE_DOCTOR, email='doctor@hospital.test', name='Dan Doctor')
    return Doctor.objects.create(
        user=user,
        specialization='Cardiology',
        qualification='MD',
        experience=8,
        license_number='LIC-1001',
        department='Cardiology',
        consultation_fee=Decimal('500.00'),
    )


@pytest.fixture
def nurse_user(db):
    return make_user(User.ROLE_NURSE, email='nurse@hospital.test', name='Nia Nurse')


@pytest.fixture
def receptionist_user(db):
    return make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test', name='Rex Desk')


@pytest.fixture
def pharmacist_user(db):
    return make_user(User.ROLE_PHARMACIST, email='pharm@hospital.test', name='Phil Pharm')


def make_patient(email, name='Pat Patient', patient_id=None):
    user = make_user(User.ROLE_PATIENT, email=email, name=name)
    return Patient.objects.create(user=user, patient_id=patient_id or f"PAT{user.pk:06d}")


@pytest.fixture
def patient(db):
    return make_patient('patient@hospital.test')


@pytest.fixture
def other_patient(db):
    return make_patient('other@hospital.test', name='Olive Other')


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor):
    return client_for(doctor.user)


@pytest.fixture
def nurse_client(nurse_user):
    return client_for(nurse_user)


@pytest.fixture
def receptionist_client(receptionist_user):
    return client_for(receptionist_user)


@pytest.fixture
def pharmacist_client(pharmacist_user):
    return client_for(pharmacist_user)


@pytest.fixture
def patient_client(patient):
    return client_for(patient.user)


def make_medicine(name='Paracetamol', stock=10, reorder=5, **extra) -> Medicine:
    defaults = dict(
        medicine_id=f"MED-{name[:4].upper()}-{Medicine.objects.count() + 1}",
        name=name,
        generic_name=name.lower(),
        manufacturer='Acme Pharma',
        category='Analgesic',
        unit_price=Decimal('2.50'),
        stock_quantity=stock,
        reorder_level=reorder,
        expiry_date=timezone.localdate() + datetime.timedelta(days=365),
    )
    defaults.update(extra)
    return Medicine.objects.create(**defaults)


@pytest.fixture
def ward(admin_user) -> Ward:
    return create_ward(admin_user, {
        'wardNumber': 'W1',
        'wardName': 'General Ward',
        'wardType': 'General',
        'totalBeds': 3,
        'dailyRate': Decimal('1500.00'),
    })
