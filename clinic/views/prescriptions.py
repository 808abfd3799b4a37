"""
Prescription endpoints.

Doctors write prescriptions; pharmacists move them through their
statuses and serve refills.  Deleting a prescription cancels it.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import HasRole, RouteAccess
from ..serializers.common import PageQuerySerializer
from ..serializers.prescription import (
    DateRangeQuerySerializer,
    PrescriptionCreateSerializer,
    PrescriptionListQuerySerializer,
    PrescriptionUpdateSerializer,
    StatusSerializer,
    format_prescription,
)
from ..services import prescriptions as svc
from .common import ok, paginate


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('prescriptions'), HasRole('Doctor', methods=('POST',))])
def prescriptions(request):
    if request.method == 'POST':
        s = PrescriptionCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        p = svc.create_prescription(request.user, s.validated_data)
        return ok(format_prescription(p), status=201, message='Prescription created successfully')

    q = PrescriptionListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    pq = PageQuerySerializer(data=request.query_params)
    pq.is_valid(raise_exception=True)
    v = q.validated_data
    qs = svc.list_prescriptions(
        request.user,
        patient=v.get('patient'),
        doctor=v.get('doctor'),
        status=v.get('status'),
        start=v.get('startDate'),
        end=v.get('endDate'),
    )
    rows, meta = paginate(qs, pq.validated_data['page'], pq.validated_data['limit'])
    return ok([format_prescription(p) for p in rows], **meta)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('prescriptions'), HasRole('Pharmacist')])
def prescription_stats(request):
    q = DateRangeQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return ok(svc.prescription_stats(start=q.validated_data.get('startDate'), end=q.validated_data.get('endDate')))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([
    IsAuthenticated, RouteAccess('prescriptions'), HasRole('Doctor', methods=('PUT', 'PATCH', 'DELETE')),
])
def prescription_detail(request, pk: int):
    """Doctors edit and cancel; pharmacists only go through status and refill."""
    p = svc.get_prescription(request.user, pk)
    if request.method == 'GET':
        return ok(format_prescription(p))
    if request.method == 'DELETE':
        svc.cancel_prescription(request.user, p)
        return ok({}, message='Prescription cancelled successfully')
    s = PrescriptionUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    p = svc.update_prescription(request.user, p, s.validated_data)
    return ok(format_prescription(p), message='Prescription updated successfully')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('prescriptions', 'PUT'), HasRole('Pharmacist')])
def prescription_status(request, pk: int):
    s = StatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    p = svc.set_status(request.user, pk, s.validated_data['status'])
    return ok(format_prescription(svc.get_prescription(request.user, p.pk)),
              message='Prescription status updated successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('prescriptions', 'PUT'), HasRole('Pharmacist')])
def refill(request, pk: int):
    p = svc.refill(request.user, pk)
    remaining = p.refills_allowed - p.refills_used
    return ok(format_prescription(svc.get_prescription(request.user, p.pk)),
              message=f"Prescription refilled successfully. Refills remaining: {remaining}")
