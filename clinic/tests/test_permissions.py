import itertools

import pytest
from django.urls import reverse

from clinic.exceptions import RouteAccessDenied
from clinic.permissions import ROLE_PERMISSIONS, check_route_access, is_route_allowed, normalize_method

from .conftest import client_for

RESOURCES = sorted({r for entry in ROLE_PERMISSIONS.values() for r in entry['routes']})
METHODS = ['GET', 'POST', 'PUT', 'DELETE']


@pytest.mark.parametrize('role,resource,method', list(itertools.product(
    [r for r in ROLE_PERMISSIONS if r != 'Admin'], RESOURCES, METHODS,
)))
def test_role_table_is_enforced_exactly(role, resource, method):
    allowed = method in ROLE_PERMISSIONS[role]['routes'].get(resource, [])
    assert is_route_allowed(role, resource, method) is allowed


@pytest.mark.parametrize('resource', RESOURCES + ['anything'])
def test_admin_passes_everything(resource):
    for method in METHODS:
        check_route_access('Admin', resource, method)


def test_unknown_role_is_refused():
    with pytest.raises(RouteAccessDenied) as exc:
        check_route_access('Janitor', 'patients', 'GET')
    assert str(exc.value.detail) == 'Invalid role'


def test_denial_lists_allowed_routes_or_methods():
    with pytest.raises(RouteAccessDenied) as exc:
        check_route_access('Nurse', 'billing', 'GET')
    assert exc.value.extra['allowedRoutes'] == list(ROLE_PERMISSIONS['Nurse']['routes'])

    with pytest.raises(RouteAccessDenied) as exc:
        check_route_access('Nurse', 'medicines', 'POST')
    assert exc.value.extra['allowedMethods'] == ['GET']


def test_patch_counts_as_put():
    assert normalize_method('patch') == 'PUT'
    assert is_route_allowed('Doctor', 'patients', 'PATCH')
    assert not is_route_allowed('Patient', 'patients', 'PATCH')


@pytest.mark.django_db
def test_unauthenticated_request_gets_401_envelope(anon):
    r = anon.get('/api/patients')
    assert r.status_code == 401
    assert r.data['success'] is False
    assert r.data['message']


@pytest.mark.django_db
def test_forbidden_method_returns_403_with_allowed_methods(nurse_client):
    r = nurse_client.post('/api/medicines', {'name': 'X'}, format='json')
    assert r.status_code == 403
    assert r.data['success'] is False
    assert r.data['message'] == 'Access denied. Nurses cannot POST medicines'
    assert r.data['allowedMethods'] == ['GET']


@pytest.mark.django_db
def test_forbidden_resource_returns_403_with_allowed_routes(patient_client):
    r = patient_client.get('/api/wards')
    assert r.status_code == 403
    assert r.data['message'] == 'Access denied. Patients cannot access wards'
    assert set(r.data['allowedRoutes']) == set(ROLE_PERMISSIONS['Patient']['routes'])


@pytest.mark.django_db
def test_admin_reaches_every_listing(admin_client):
    for path in ('/api/doctors', '/api/patients', '/api/appointments', '/api/wards', '/api/medicines',
                 '/api/prescriptions', '/api/billing', '/api/staff', '/api/auth/users'):
        assert admin_client.get(path).status_code == 200, path


@pytest.mark.django_db
def test_ward_writes_are_admin_only(nurse_client, ward):
    r = nurse_client.put(f'/api/wards/{ward.pk}', {'wardName': 'Renamed'}, format='json')
    assert r.status_code == 403
    assert nurse_client.get(f'/api/wards/{ward.pk}').status_code == 200


@pytest.mark.django_db
def test_role_gated_stats(pharmacist_client, receptionist_client, doctor_client):
    assert pharmacist_client.get('/api/prescriptions/stats').status_code == 200
    assert doctor_client.get('/api/prescriptions/stats').status_code == 403
    assert receptionist_client.get('/api/billing/stats').status_code == 200
    assert doctor_client.get('/api/reports/revenue').status_code == 403


@pytest.mark.django_db
def test_my_permissions_reflects_role_table(doctor):
    r = client_for(doctor.user).get(reverse('my_permissions'))
    assert r.status_code == 200
    data = r.data['data']
    assert data['role'] == 'Doctor'
    assert data['dashboard'] == '/api/dashboards/doctor'
    assert data['routes'] == ROLE_PERMISSIONS['Doctor']['routes']


@pytest.mark.django_db
def test_dashboards_are_role_specific(doctor_client, nurse_client, admin_client):
    assert doctor_client.get('/api/dashboards/doctor').status_code == 200
    assert doctor_client.get('/api/dashboards/nurse').status_code == 403
    assert nurse_client.get('/api/dashboards/admin').status_code == 403
    assert admin_client.get('/api/dashboards/nurse').status_code == 200
