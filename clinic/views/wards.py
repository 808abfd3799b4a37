"""
Ward endpoints.

Beds are allocated and released through dedicated actions; both count
as updates of the ward, so only roles allowed to PUT wards may use them.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import HasRole, RouteAccess
from ..serializers.ward import (
    AllocateBedSerializer,
    ReleaseBedSerializer,
    WardCreateSerializer,
    WardListQuerySerializer,
    WardUpdateSerializer,
    format_bed,
    format_ward,
)
from ..services import wards as svc
from .common import ok

WRITE_METHODS = ('POST', 'PUT', 'DELETE')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('wards'), HasRole(methods=WRITE_METHODS)])
def wards(request):
    if request.method == 'POST':
        s = WardCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        ward = svc.create_ward(request.user, s.validated_data)
        return ok(format_ward(ward, with_beds=True), status=201)

    q = WardListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = svc.list_wards(
        ward_type=q.validated_data.get('wardType'),
        department=q.validated_data.get('department'),
        floor=q.validated_data.get('floor'),
        available=q.validated_data.get('available'),
    )
    data = [format_ward(w) for w in qs]
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('wards')])
def ward_stats(request):
    return ok(svc.ward_stats())


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('wards'), HasRole(methods=WRITE_METHODS)])
def ward_detail(request, pk: int):
    if request.method == 'DELETE':
        svc.delete_ward(request.user, pk)
        return ok({}, message='Ward deleted')
    ward = svc.get_ward(pk)
    if request.method == 'GET':
        return ok(format_ward(ward, with_beds=True))
    s = WardUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    ward = svc.update_ward(request.user, ward, s.validated_data)
    return ok(format_ward(ward))


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('wards', 'PUT')])
def allocate(request, pk: int):
    s = AllocateBedSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    ward, bed = svc.allocate_bed(
        request.user,
        pk,
        patient_pk=v['patientId'],
        admission_date=v.get('admissionDate'),
        expected_discharge_date=v.get('expectedDischargeDate'),
        reason=v.get('reason', ''),
    )
    return ok(format_ward(ward), bed=format_bed(bed), message='Bed allocated successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('wards', 'PUT')])
def release(request, pk: int):
    s = ReleaseBedSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    ward = svc.release_bed(request.user, pk, bed_number=s.validated_data['bedNumber'])
    return ok(format_ward(ward), message='Bed released successfully')
