"""
Appointment endpoints: booking, listing, editing, cancelling and
rescheduling.  Patients see and book only their own appointments.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import RouteAccess
from ..serializers.appointment import (
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentUpdateSerializer,
    CancelSerializer,
    RescheduleSerializer,
    format_appointment,
)
from ..serializers.common import PageQuerySerializer
from ..services import appointments as svc
from .common import ok, paginate


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('appointments')])
def appointments(request):
    if request.method == 'POST':
        s = AppointmentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        appt = svc.create_appointment(request.user, s.validated_data)
        return ok(format_appointment(appt), status=201)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    v = q.validated_data
    qs = svc.list_appointments(
        request.user,
        doctor=v.get('doctor'),
        patient=v.get('patient'),
        status=v.get('status'),
        priority=v.get('priority'),
        day=v.get('date'),
        start=v.get('startDate'),
        end=v.get('endDate'),
    )
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_appointment(a) for a in rows], **meta)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('appointments')])
def appointment_detail(request, pk: int):
    appt = svc.get_appointment(request.user, pk)
    if request.method == 'GET':
        return ok(format_appointment(appt))
    if request.method == 'DELETE':
        svc.delete_appointment(request.user, appt)
        return ok({})
    s = AppointmentUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    appt = svc.update_appointment(request.user, appt, s.validated_data)
    return ok(format_appointment(appt))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('appointments')])
def cancel(request, pk: int):
    appt = svc.get_appointment(request.user, pk)
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = svc.cancel_appointment(request.user, appt, s.validated_data.get('reason', ''))
    return ok(format_appointment(appt), message='Appointment cancelled')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('appointments')])
def reschedule(request, pk: int):
    appt = svc.get_appointment(request.user, pk)
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appt = svc.reschedule_appointment(
        request.user, appt, s.validated_data['appointmentDate'], s.validated_data['timeSlot']
    )
    return ok(format_appointment(appt), message='Appointment rescheduled')
