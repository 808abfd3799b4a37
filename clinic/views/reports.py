"""Management reports.  Revenue and the hospital overview are for administrators."""
from __future__ import annotations

from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from clinic.models import Bill, BillItem, Ward

from ..permissions import HasRole, RouteAccess
from ..serializers.appointment import format_appointment
from ..serializers.billing import format_bill
from ..serializers.common import LenientDateField
from ..services import reports as svc
from .common import ok


class ReportQuerySerializer(serializers.Serializer):
    startDate = LenientDateField(required=False)
    endDate = LenientDateField(required=False)
    doctorId = serializers.IntegerField(required=False)
    patientId = serializers.IntegerField(required=False)
    wardType = serializers.ChoiceField(choices=[c[0] for c in Ward.TYPE_CHOICES], required=False)
    department = serializers.CharField(required=False)
    category = serializers.ChoiceField(choices=[c[0] for c in BillItem.CATEGORY_CHOICES], required=False)
    paymentStatus = serializers.ChoiceField(choices=[c[0] for c in Bill.STATUS_CHOICES], required=False)


def _query(request) -> dict:
    q = ReportQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return q.validated_data


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('reports')])
def patient_visits(request):
    v = _query(request)
    visits, stats = svc.patient_visits(
        start=v.get('startDate'), end=v.get('endDate'), doctor=v.get('doctorId'), patient=v.get('patientId'),
    )
    return ok([format_appointment(a) for a in visits], stats=stats, count=len(visits))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('reports')])
def doctor_performance(request):
    v = _query(request)
    data = svc.doctor_performance(start=v.get('startDate'), end=v.get('endDate'), doctor=v.get('doctorId'))
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('reports')])
def ward_usage(request):
    v = _query(request)
    rows, stats = svc.ward_usage(ward_type=v.get('wardType'), department=v.get('department'))
    return ok(rows, stats=stats, count=len(rows))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('reports'), HasRole()])
def revenue(request):
    v = _query(request)
    bills, stats = svc.revenue(
        start=v.get('startDate'), end=v.get('endDate'),
        category=v.get('category'), payment_status=v.get('paymentStatus'),
    )
    return ok([format_bill(b) for b in bills], stats=stats, count=len(bills))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('reports'), HasRole()])
def overview(request):
    return ok(svc.hospital_overview())
