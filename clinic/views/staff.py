from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import RouteAccess
from ..serializers.auth import format_user
from ..serializers.staff import (
    PerformanceSerializer,
    StaffListQuerySerializer,
    StaffSerializer,
    StaffUpdateSerializer,
    format_staff,
)
from ..services import staff as svc
from .common import ok


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def staff(request):
    if request.method == 'POST':
        s = StaffSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        member = svc.create_staff(request.user, s.validated_data)
        return ok(format_staff(member), status=201)

    q = StaffListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    qs = svc.list_staff(
        department=v.get('department'),
        designation=v.get('designation'),
        employment_type=v.get('employmentType'),
        shift=v.get('shift'),
    )
    data = [format_staff(m) for m in qs]
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def available_users(request):
    data = [format_user(u) for u in svc.available_users()]
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def staff_stats(request):
    return ok(svc.staff_stats())


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def by_department(request, department: str):
    data = [format_staff(m) for m in svc.list_staff(department=department)]
    return ok(data, count=len(data))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def staff_detail(request, pk: int):
    member = svc.get_staff(pk)
    if request.method == 'GET':
        return ok(format_staff(member))
    if request.method == 'DELETE':
        svc.deactivate_staff(request.user, member)
        return ok({}, message='Staff member deactivated successfully')
    s = StaffUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    member = svc.update_staff(request.user, member, s.validated_data)
    return ok(format_staff(member))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('staff')])
def performance(request, pk: int):
    member = svc.get_staff(pk)
    s = PerformanceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    member = svc.update_performance(request.user, member, s.validated_data['rating'],
                                    s.validated_data.get('notes', ''))
    return ok(format_staff(member))
