"""
Account life cycle: registration, sign in, password reset and user
administration.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import APIException, NotFound, ValidationError
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.exceptions import AuthError, ConflictError, RouteAccessDenied
from clinic.models import Patient
from clinic.services.audit import log_action
from clinic.services.ids import new_patient_id

logger = logging.getLogger(__name__)

User = get_user_model()


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def _check_password_strength(password: str, user) -> None:
    try:
        validate_password(password, user=user)
    except DjangoValidationError as e:
        raise ValidationError({'password': e.messages})


def issue_tokens(user) -> dict:
    """Signed access and refresh tokens carrying the user id and role."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    return {'token': str(refresh.access_token), 'refreshToken': str(refresh)}


def register_user(*, actor=None, name, email, password, role=User.ROLE_PATIENT, phone='',
                  address=None, date_of_birth=None, gender='', blood_group=''):
    email = email.strip().lower()
    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError('User already exists with this email')
    if role == User.ROLE_ADMIN and getattr(actor, 'role', None) != User.ROLE_ADMIN:
        raise RouteAccessDenied('Only an administrator can create administrator accounts')
    _check_password_strength(password, User(email=email, name=name))

    with transaction.atomic():
        user = User.objects.create_user(
            email=email,
            password=password,
            name=name,
            role=role,
            phone=phone,
            address=address or {},
            date_of_birth=date_of_birth,
            gender=gender or '',
        )
        if role == User.ROLE_PATIENT:
            Patient.objects.create(user=user, patient_id=new_patient_id(), blood_group=blood_group or '')
    log_action(user=actor if getattr(actor, 'pk', None) else user, action='user_register', obj=user,
               detail={'role': role})
    return user


def authenticate_credentials(email: str, password: str, *, ip: str | None = None):
    user = User.objects.filter(email__iexact=(email or '').strip()).first()
    if user is None or not user.check_password(password):
        logger.warning('failed login for %s from %s', email, ip)
        raise AuthError('Invalid credentials')
    if not user.is_active:
        raise AuthError('Account is deactivated')
    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    log_action(user=user, action='login', obj=user, detail={'ip': ip})
    return user


def start_password_reset(email: str) -> str:
    """Store a hashed single-use token and mail the raw one to the user."""
    user = User.objects.filter(email__iexact=(email or '').strip()).first()
    if user is None:
        raise NotFound('There is no user with that email')

    raw = secrets.token_hex(20)
    user.reset_password_token = _hash_token(raw)
    user.reset_password_expire = timezone.now() + timedelta(minutes=settings.PASSWORD_RESET_MINUTES)
    user.save(update_fields=['reset_password_token', 'reset_password_expire'])

    reset_url = f"{settings.FRONTEND_RESET_URL.rstrip('/')}/{raw}"
    message = (
        'You are receiving this email because you (or someone else) has requested '
        f'the reset of a password. Please open the following link within '
        f'{settings.PASSWORD_RESET_MINUTES} minutes:\n\n{reset_url}'
    )
    try:
        send_mail('Password reset token', message, settings.DEFAULT_FROM_EMAIL, [user.email])
    except Exception:
        logger.exception('could not send password reset mail to %s', user.email)
        user.reset_password_token = None
        user.reset_password_expire = None
        user.save(update_fields=['reset_password_token', 'reset_password_expire'])
        raise APIException('Email could not be sent')
    return raw


def reset_password(raw_token: str, new_password: str):
    user = User.objects.filter(
        reset_password_token=_hash_token(raw_token or ''),
        reset_password_expire__gt=timezone.now(),
    ).first()
    if user is None:
        raise ValidationError('Invalid token')
    _check_password_strength(new_password, user)
    user.set_password(new_password)
    user.reset_password_token = None
    user.reset_password_expire = None
    user.save(update_fields=['password', 'reset_password_token', 'reset_password_expire'])
    log_action(user=user, action='password_reset', obj=user)
    return user


def change_password(user, current_password: str, new_password: str):
    if not user.check_password(current_password):
        raise AuthError('Password is incorrect')
    _check_password_strength(new_password, user)
    user.set_password(new_password)
    user.save(update_fields=['password'])
    log_action(user=user, action='password_change', obj=user)
    return user


def update_details(user, data: dict):
    mapping = {
        'name': 'name',
        'phone': 'phone',
        'address': 'address',
        'dateOfBirth': 'date_of_birth',
        'gender': 'gender',
    }
    changed = []
    for key, field in mapping.items():
        if key in data:
            setattr(user, field, data[key])
            changed.append(field)
    if changed:
        user.save(update_fields=changed)
    return user


def set_user_active(actor, user_id: int, is_active: bool):
    user = User.objects.filter(id=user_id).first()
    if user is None:
        raise NotFound('User not found')
    if user.pk == actor.pk and not is_active:
        raise ConflictError('You cannot deactivate your own account')
    user.is_active = is_active
    user.save(update_fields=['is_active'])
    log_action(user=actor, action='user_activate' if is_active else 'user_deactivate', obj=user)
    return user
