"""
Doctor directory endpoints.

Everyone allowed on the ``doctors`` resource may browse the directory and
look up free appointment slots.  Profiles are created and removed by
admins; doctors may edit their own profile and weekly availability.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import HasRole, RouteAccess
from ..serializers.appointment import format_appointment
from ..serializers.auth import format_user
from ..serializers.common import PageQuerySerializer
from ..serializers.doctor import (
    AvailabilityUpdateSerializer,
    DoctorCreateSerializer,
    DoctorListQuerySerializer,
    DoctorUpdateSerializer,
    OnCallShiftSerializer,
    SlotQuerySerializer,
    format_doctor,
)
from ..services import doctors as svc
from .common import ok, paginate


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('doctors')])
def doctors(request):
    if request.method == 'POST':
        s = DoctorCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        doctor = svc.create_doctor(request.user, user_id=s.validated_data['userId'], data=s.validated_data)
        return ok(format_doctor(doctor), status=201)

    q = DoctorListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    qs = svc.list_doctors(
        specialization=q.validated_data.get('specialization'),
        department=q.validated_data.get('department'),
        is_available=q.validated_data.get('isAvailable'),
        search=q.validated_data.get('search'),
    )
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_doctor(d) for d in rows], **meta)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('doctors')])
def doctor_detail(request, pk: int):
    doctor = svc.get_doctor(pk)
    if request.method == 'GET':
        return ok(format_doctor(doctor))
    if request.method == 'DELETE':
        svc.deactivate_doctor(request.user, doctor)
        return ok({})
    s = DoctorUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    doctor = svc.update_doctor(request.user, doctor, s.validated_data)
    return ok(format_doctor(doctor))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, HasRole('Doctor')])
def doctor_availability(request, pk: int):
    """Replace the weekly availability.  Doctors may only edit their own."""
    doctor = svc.get_doctor(pk)
    s = AvailabilityUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.set_availability(request.user, doctor, s.validated_data['availability'])
    return ok(format_doctor(doctor))


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasRole()])
def doctor_on_call(request, pk: int):
    doctor = svc.get_doctor(pk)
    s = OnCallShiftSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor = svc.add_on_call_shift(request.user, doctor, s.validated_data)
    return ok(format_doctor(doctor), status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('appointments', 'GET')])
def doctor_slots(request, pk: int):
    doctor = svc.get_doctor(pk)
    q = SlotQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    slots = svc.free_slots(doctor, q.validated_data['date'])
    return ok(slots, count=len(slots), date=q.validated_data['date'].isoformat())


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('doctors', 'POST')])
def available_users(request):
    """Doctor-role users that have no doctor profile yet."""
    users = [format_user(u) for u in svc.available_doctor_users()]
    return ok(users, count=len(users))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('appointments', 'GET')])
def doctor_schedule(request, pk: int):
    return ok(svc.schedule(svc.get_doctor(pk)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('appointments', 'GET')])
def doctor_appointments(request, pk: int):
    doctor = svc.get_doctor(pk)
    data = [format_appointment(a) for a in svc.doctor_appointments(request.user, doctor)]
    return ok(data, count=len(data))
