import pytest

from clinic.models import Staff
from clinic.services.wards import allocate_bed

from .conftest import client_for, make_medicine, make_user

pytestmark = pytest.mark.django_db

BILL = {
    'items': [{'description': 'Consultation', 'category': 'Consultation', 'quantity': 1, 'unitPrice': '300.00'}],
}


@pytest.mark.parametrize('fixture,path,info', [
    ('doctor_client', 'doctor', 'doctorInfo'),
    ('patient_client', 'patient', 'patientInfo'),
    ('nurse_client', 'nurse', 'nurseInfo'),
    ('receptionist_client', 'receptionist', 'receptionistInfo'),
    ('pharmacist_client', 'pharmacist', 'pharmacistInfo'),
])
def test_dashboard_shape(request, fixture, path, info):
    client = request.getfixturevalue(fixture)
    r = client.get(f'/api/dashboards/{path}')
    assert r.status_code == 200, r.data
    body = r.data['data']
    assert body['role'] == path.capitalize()
    assert info in body
    assert 'overview' in body['dashboard']
    assert all({'label', 'route'} <= set(a) for a in body['quickActions'])


def test_admin_dashboard_counts(admin_client, doctor, patient, ward, nurse_user):
    Staff.objects.create(user=nurse_user, employee_id='EMP00001', designation='Nurse', department='General',
                         joining_date='2024-01-01')
    make_medicine('Scarce', stock=1, reorder=5)
    r = admin_client.get('/api/dashboards/admin')
    assert r.status_code == 200
    overview = r.data['data']['dashboard']['overview']
    assert overview['totalPatients'] == 1
    assert overview['totalDoctors'] == 1
    assert overview['totalBeds'] == 3
    assert overview['availableBeds'] == 3
    assert overview['occupiedBeds'] == 0
    assert overview['activeStaff'] == 1
    assert r.data['data']['dashboard']['alerts']['lowStockMedicines'] == 1


def test_patient_dashboard_lists_open_bills(receptionist_client, patient_client, patient):
    r = receptionist_client.post('/api/billing', {'patient': patient.pk, **BILL}, format='json')
    assert r.status_code == 201
    r = patient_client.get('/api/dashboards/patient')
    overview = r.data['data']['dashboard']['overview']
    assert overview['unpaidBills'] == 1
    assert overview['totalUnpaidAmount'] == 300.0
    assert r.data['data']['patientInfo']['patientId'] == patient.patient_id


def test_patient_dashboard_without_profile(db):
    user = make_user('Patient', email='bare@hospital.test')
    r = client_for(user).get('/api/dashboards/patient')
    assert r.status_code == 404
    assert r.data['message'] == 'Patient profile not found. Please complete your profile.'


def test_doctor_dashboard_without_profile(db):
    user = make_user('Doctor', email='noprofile@hospital.test')
    r = client_for(user).get('/api/dashboards/doctor')
    assert r.status_code == 404
    assert r.data['message'] == 'Doctor profile not found'


def test_nurse_dashboard_reflects_occupancy(nurse_client, nurse_user, ward, patient):
    allocate_bed(nurse_user, ward.pk, patient_pk=patient.pk, reason='observation')
    r = nurse_client.get('/api/dashboards/nurse')
    overview = r.data['data']['dashboard']['overview']
    assert overview['totalWards'] == 1
    assert overview['occupiedBeds'] == 1
    assert overview['availableBeds'] == 2


def test_pharmacist_dashboard_low_stock(pharmacist_client):
    make_medicine('Scarce', stock=2, reorder=5)
    make_medicine('Plenty', stock=50, reorder=5)
    r = pharmacist_client.get('/api/dashboards/pharmacist')
    overview = r.data['data']['dashboard']['overview']
    assert overview['lowStockMedicines'] == 1
    assert overview['totalMedicines'] == 2
    assert [m['name'] for m in r.data['data']['dashboard']['lowStockAlerts']] == ['Scarce']
