import re

import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from clinic.models import AuditEvent, Patient, User

from .conftest import PASSWORD, make_user

pytestmark = pytest.mark.django_db


def register(client, **overrides):
    payload = {
        'name': 'Jane Roe',
        'email': 'jane@hospital.test',
        'password': 'Str0ng!pass',
        'phone': '5550101',
    }
    payload.update(overrides)
    return client.post(reverse('register_view'), payload, format='json')


def bearer(client, token):
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    return client


def test_register_creates_patient_with_profile_and_tokens():
    r = register(APIClient())
    assert r.status_code == 201
    assert r.data['success'] is True
    assert r.data['token'] and r.data['refreshToken']
    assert r.data['user']['role'] == 'Patient'
    assert 'password' not in r.data['user']
    user = User.objects.get(email='jane@hospital.test')
    assert Patient.objects.filter(user=user).exists()


def test_register_duplicate_email_is_rejected():
    client = APIClient()
    assert register(client).status_code == 201
    r = register(client, email='JANE@hospital.test')
    assert r.status_code == 400
    assert r.data['success'] is False
    assert 'already exists' in r.data['message']


def test_register_cannot_self_assign_admin():
    r = register(APIClient(), role='Admin')
    assert r.status_code == 403
    assert not User.objects.filter(email='jane@hospital.test').exists()


def test_login_returns_token_usable_as_bearer():
    make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    r = client.post(reverse('login_view'), {'email': 'n@hospital.test', 'password': PASSWORD}, format='json')
    assert r.status_code == 200
    me = bearer(client, r.data['token']).get(reverse('me_view'))
    assert me.status_code == 200
    assert me.data['data']['email'] == 'n@hospital.test'
    assert me.data['data']['role'] == 'Nurse'
    assert AuditEvent.objects.filter(action='login').exists()


def test_login_wrong_password_is_401():
    make_user(User.ROLE_NURSE, email='n@hospital.test')
    r = APIClient().post(reverse('login_view'), {'email': 'n@hospital.test', 'password': 'nope'}, format='json')
    assert r.status_code == 401
    assert r.data == {'success': False, 'message': 'Invalid credentials'}


def test_login_ignores_role_in_body():
    u = make_user(User.ROLE_PATIENT, email='p@hospital.test')
    r = APIClient().post(
        reverse('login_view'), {'email': 'p@hospital.test', 'password': PASSWORD, 'role': 'Admin'}, format='json'
    )
    assert r.status_code == 200
    u.refresh_from_db()
    assert u.role == 'Patient'
    assert r.data['user']['role'] == 'Patient'


def test_deactivated_user_cannot_login():
    make_user(User.ROLE_NURSE, email='n@hospital.test', is_active=False)
    r = APIClient().post(reverse('login_view'), {'email': 'n@hospital.test', 'password': PASSWORD}, format='json')
    assert r.status_code == 401


def test_me_requires_authentication():
    r = APIClient().get(reverse('me_view'))
    assert r.status_code == 401
    assert r.data['success'] is False


def test_token_rejected_after_role_change():
    u = make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    token = client.post(reverse('login_view'), {'email': u.email, 'password': PASSWORD}, format='json').data['token']
    u.role = User.ROLE_RECEPTIONIST
    u.save()
    r = bearer(client, token).get(reverse('me_view'))
    assert r.status_code == 401


def test_forgot_and_reset_password_flow():
    u = make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    r = client.post(reverse('forgot_password_view'), {'email': u.email}, format='json')
    assert r.status_code == 200
    assert r.data['data'] == 'Email sent'
    assert len(mail.outbox) == 1
    raw = re.search(r'/([0-9a-f]{40})\s*$', mail.outbox[0].body).group(1)

    u.refresh_from_db()
    assert u.reset_password_token and u.reset_password_token != raw

    r = client.put(reverse('reset_password_view', args=[raw]), {'password': 'N3w!secret'}, format='json')
    assert r.status_code == 200
    assert r.data['token']
    u.refresh_from_db()
    assert u.check_password('N3w!secret')
    assert u.reset_password_token is None

    # single use
    r = client.put(reverse('reset_password_view', args=[raw]), {'password': 'An0ther!one'}, format='json')
    assert r.status_code == 400
    assert r.data['message'] == 'Invalid token'


def test_forgot_password_unknown_email_is_404():
    r = APIClient().post(reverse('forgot_password_view'), {'email': 'ghost@hospital.test'}, format='json')
    assert r.status_code == 404
    assert len(mail.outbox) == 0


def test_update_password_checks_current_password():
    u = make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    client.force_authenticate(user=u)
    r = client.put(reverse('update_password_view'),
                   {'currentPassword': 'wrong', 'newPassword': 'N3w!secret'}, format='json')
    assert r.status_code == 401
    r = client.put(reverse('update_password_view'),
                   {'currentPassword': PASSWORD, 'newPassword': 'N3w!secret'}, format='json')
    assert r.status_code == 200
    u.refresh_from_db()
    assert u.check_password('N3w!secret')


def test_update_details_changes_only_whitelisted_fields():
    u = make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    client.force_authenticate(user=u)
    r = client.put(reverse('update_details_view'),
                   {'name': 'Renamed', 'phone': '5550199', 'role': 'Admin', 'email': 'x@y.z'}, format='json')
    assert r.status_code == 200
    u.refresh_from_db()
    assert (u.name, u.phone, u.role, u.email) == ('Renamed', '5550199', 'Nurse', 'n@hospital.test')


def test_refresh_issues_new_access_token():
    make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    login = client.post(reverse('login_view'), {'email': 'n@hospital.test', 'password': PASSWORD}, format='json')
    r = client.post(reverse('jwt_refresh_view'), {'refreshToken': login.data['refreshToken']}, format='json')
    assert r.status_code == 200
    assert r.data['token']


def test_logout_blacklists_refresh_token():
    make_user(User.ROLE_NURSE, email='n@hospital.test')
    client = APIClient()
    login = client.post(reverse('login_view'), {'email': 'n@hospital.test', 'password': PASSWORD}, format='json')
    bearer(client, login.data['token'])
    r = client.post(reverse('jwt_logout_view'), {'refreshToken': login.data['refreshToken']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1

    r = client.post(reverse('jwt_refresh_view'), {'refreshToken': login.data['refreshToken']}, format='json')
    assert r.status_code == 401
    r = client.post(reverse('jwt_logout_view'), {'refreshToken': login.data['refreshToken']}, format='json')
    assert r.status_code == 401
    assert r.data['success'] is False


def test_logout_rejects_bad_or_foreign_refresh_token():
    make_user(User.ROLE_NURSE, email='n@hospital.test')
    make_user(User.ROLE_NURSE, email='m@hospital.test')
    client = APIClient()
    mine = client.post(reverse('login_view'), {'email': 'n@hospital.test', 'password': PASSWORD}, format='json')
    theirs = client.post(reverse('login_view'), {'email': 'm@hospital.test', 'password': PASSWORD}, format='json')
    bearer(client, mine.data['token'])

    r = client.post(reverse('jwt_logout_view'), {'refreshToken': 'not-a-token'}, format='json')
    assert r.status_code == 401
    r = client.post(reverse('jwt_logout_view'), {'refreshToken': theirs.data['refreshToken']}, format='json')
    assert r.status_code == 401
    assert r.data['message'] == 'Token does not belong to this user'


def test_admin_can_deactivate_user_but_not_self(admin_client, admin_user):
    target = make_user(User.ROLE_NURSE, email='n@hospital.test')
    r = admin_client.put(reverse('user_status_view', args=[target.pk]), {'isActive': False}, format='json')
    assert r.status_code == 200
    assert r.data['data']['isActive'] is False
    r = admin_client.put(reverse('user_status_view', args=[admin_user.pk]), {'isActive': False}, format='json')
    assert r.status_code == 400


def test_users_listing_is_admin_only(admin_client, nurse_client):
    assert admin_client.get(reverse('list_users_view')).status_code == 200
    r = nurse_client.get(reverse('list_users_view'))
    assert r.status_code == 403
    assert 'allowedRoutes' in r.data
