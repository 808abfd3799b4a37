"""
Authentication views.

Registration, email/password sign in, password reset by mailed token,
profile details and JWT refresh/logout.  User administration for
admins (listing and switching accounts on or off) lives here as well
because it shares the user projection.
"""
from __future__ import annotations

from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.permissions import RouteAccess
from clinic.serializers.auth import (
    ForgotPasswordSerializer,
    LoginSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    UpdateDetailsSerializer,
    UpdatePasswordSerializer,
    UserListQuerySerializer,
    UserStatusSerializer,
    format_user,
)
from clinic.serializers.common import PageQuerySerializer
from clinic.serializers.doctor import format_doctor
from clinic.serializers.patient import format_patient
from clinic.services import accounts
from clinic.views.common import ok, paginate

from .models import User


def _token_response(user: User, status: int = 200) -> Response:
    tokens = accounts.issue_tokens(user)
    return Response({'success': True, **tokens, 'user': format_user(user)}, status=status)


def _client_ip(request) -> str | None:
    return request.META.get('REMOTE_ADDR')


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    user = accounts.register_user(
        actor=request.user,
        name=v['name'],
        email=v['email'],
        password=v['password'],
        role=v['role'],
        phone=v['phone'],
        address=v.get('address'),
        date_of_birth=v.get('dateOfBirth'),
        gender=v.get('gender', ''),
        blood_group=v.get('bloodGroup', ''),
    )
    return _token_response(user, status=201)

register_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.authenticate_credentials(
        s.validated_data['email'], s.validated_data['password'], ip=_client_ip(request)
    )
    return _token_response(user)

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password_view(request):
    s = ForgotPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.start_password_reset(s.validated_data['email'])
    return ok('Email sent')

forgot_password_view.cls.throttle_scope = 'login'


@api_view(['PUT'])
@permission_classes([AllowAny])
def reset_password_view(request, resettoken: str):
    s = ResetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.reset_password(resettoken, s.validated_data['password'])
    return _token_response(user)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    user = request.user
    data = format_user(user)
    if hasattr(user, 'doctor_profile'):
        data['doctorProfile'] = format_doctor(user.doctor_profile, with_user=False)
    if hasattr(user, 'patient_profile'):
        data['patientProfile'] = format_patient(user.patient_profile, with_user=False)
    return ok(data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def update_password_view(request):
    s = UpdatePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.change_password(
        request.user, s.validated_data['currentPassword'], s.validated_data['newPassword']
    )
    return _token_response(user)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def update_details_view(request):
    s = UpdateDetailsSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = accounts.update_details(request.user, s.validated_data)
    return ok(format_user(user))


# ---------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('users')])
def list_users_view(request):
    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    qs = User.objects.all().order_by('-created_at')
    if q.validated_data.get('role'):
        qs = qs.filter(role=q.validated_data['role'])
    if q.validated_data.get('isActive') is not None:
        qs = qs.filter(is_active=q.validated_data['isActive'])
    if q.validated_data.get('search'):
        term = q.validated_data['search']
        qs = qs.filter(Q(name__icontains=term) | Q(email__icontains=term))
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_user(u) for u in rows], **meta)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('users')])
def user_status_view(request, pk: int):
    s = UserStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.set_user_active(request.user, pk, s.validated_data['isActive'])
    return ok(format_user(user))


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    refresh = request.data.get('refresh') or request.data.get('refreshToken')
    serializer = TokenRefreshSerializer(data={'refresh': refresh})
    try:
        serializer.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    out = serializer.validated_data
    body = {'success': True, 'token': out['access']}
    if 'refresh' in out:
        body['refreshToken'] = out['refresh']
    return Response(body)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one of the user."""
    refresh = request.data.get('refreshToken') or request.data.get('refresh')
    count = 0
    if refresh:
        try:
            token = RefreshToken(refresh)
        except TokenError as e:
            raise InvalidToken(e.args[0])
        if str(token.get(jwt_settings.USER_ID_CLAIM)) != str(request.user.pk):
            raise InvalidToken('Token does not belong to this user')
        token.blacklist()
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return ok(blacklisted=count)
