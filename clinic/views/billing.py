"""
Billing endpoints.  Recording a payment and filing an insurance claim are
updates of the bill; deciding a claim is reserved to administrators.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import HasRole, RouteAccess
from ..serializers.billing import (
    BillCreateSerializer,
    BillListQuerySerializer,
    BillUpdateSerializer,
    InsuranceClaimSerializer,
    InsuranceUpdateSerializer,
    PaymentSerializer,
    format_bill,
)
from ..serializers.common import PageQuerySerializer, money
from ..serializers.prescription import DateRangeQuerySerializer
from ..services import billing as svc
from .common import ok, paginate


def _reload(request, bill):
    return format_bill(svc.get_bill(request.user, bill.pk))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('billing')])
def bills(request):
    if request.method == 'POST':
        s = BillCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        bill = svc.create_bill(request.user, s.validated_data)
        return ok(_reload(request, bill), status=201, message='Bill created successfully')

    q = BillListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    v = q.validated_data
    qs = svc.list_bills(
        request.user,
        patient=v.get('patient'),
        payment_status=v.get('paymentStatus'),
        start=v.get('startDate'),
        end=v.get('endDate'),
        search=v.get('search'),
    )
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_bill(b) for b in rows], **meta)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('billing'), HasRole('Receptionist')])
def billing_stats(request):
    q = DateRangeQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = svc.billing_stats(start=q.validated_data.get('startDate'), end=q.validated_data.get('endDate'))
    for key in ('totalRevenue', 'totalCollected', 'totalPending'):
        data[key] = money(data[key])
    for row in data['paymentStatusBreakdown'] + data['paymentMethodBreakdown']:
        row['amount'] = money(row['amount'])
    return ok(data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('billing')])
def bill_detail(request, pk: int):
    if request.method == 'GET':
        return ok(format_bill(svc.get_bill(request.user, pk)))
    if request.method == 'DELETE':
        svc.delete_bill(request.user, pk)
        return ok({}, message='Bill deleted successfully')
    s = BillUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    bill = svc.update_bill(request.user, pk, s.validated_data)
    return ok(_reload(request, bill), message='Bill updated successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated, RouteAccess('billing', 'PUT'), HasRole('Receptionist')])
def payment(request, pk: int):
    s = PaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    bill = svc.record_payment(
        request.user,
        pk,
        amount=v['amount'],
        method=v['paymentMethod'],
        transaction_id=v.get('transactionId', ''),
        notes=v.get('notes', ''),
    )
    return ok(_reload(request, bill), message='Payment recorded successfully')


@api_view(['POST', 'PUT'])
@permission_classes([IsAuthenticated, RouteAccess('billing'), HasRole('Receptionist', methods=('POST',)),
                     HasRole(methods=('PUT',))])
def insurance(request, pk: int):
    if request.method == 'POST':
        s = InsuranceClaimSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data
        bill = svc.submit_claim(
            request.user, pk,
            claim_number=v['claimNumber'], provider=v['provider'], amount_claimed=v['amountClaimed'],
        )
        return ok(_reload(request, bill), message='Insurance claim submitted successfully')

    s = InsuranceUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    bill = svc.update_claim(
        request.user, pk,
        status=v['status'],
        approved_amount=v.get('approvedAmount'),
        rejection_reason=v.get('rejectionReason', ''),
    )
    return ok(_reload(request, bill), message=f"Insurance claim {v['status'].lower()} successfully")
