"""Medicine inventory endpoints, including the stock ledger and alerts."""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from ..permissions import RouteAccess
from ..serializers.common import PageQuerySerializer, money
from ..serializers.medicine import (
    ExpiringQuerySerializer,
    MedicineListQuerySerializer,
    MedicineSerializer,
    MedicineUpdateSerializer,
    StockUpdateSerializer,
    format_medicine,
)
from ..services import medicines as svc
from .common import ok, paginate

_STOCK_VERBS = {'add': 'added', 'reduce': 'reduced', 'set': 'updated'}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def medicines(request):
    if request.method == 'POST':
        s = MedicineSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        medicine = svc.create_medicine(request.user, s.validated_data)
        return ok(format_medicine(medicine), status=201, message='Medicine created successfully')

    q = MedicineListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    p = PageQuerySerializer(data=request.query_params)
    p.is_valid(raise_exception=True)
    v = q.validated_data
    qs = svc.list_medicines(
        search=v.get('search'),
        category=v.get('category'),
        stock_status=v.get('stockStatus'),
        low_stock=v.get('lowStock'),
        expiring_soon=v.get('expiringSoon'),
    )
    rows, meta = paginate(qs, p.validated_data['page'], p.validated_data['limit'])
    return ok([format_medicine(m) for m in rows], **meta)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def medicine_stats(request):
    data = svc.medicine_stats()
    data['totalStockValue'] = money(data['totalStockValue'])
    return ok(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def medicine_categories(request):
    data = svc.categories()
    return ok(data, count=len(data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def low_stock(request):
    meds, stats = svc.low_stock()
    return ok([format_medicine(m) for m in meds], stats=stats, count=len(meds))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def expiring(request):
    q = ExpiringQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    meds, stats = svc.expiring(q.validated_data['months'])
    return ok([format_medicine(m) for m in meds], stats=stats, count=len(meds))


@api_view(['GET'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def expired(request):
    meds = svc.expired()
    return ok([format_medicine(m) for m in meds], count=len(meds))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def medicine_detail(request, pk: int):
    medicine = svc.get_medicine(pk)
    if request.method == 'GET':
        return ok(format_medicine(medicine))
    if request.method == 'DELETE':
        svc.deactivate_medicine(request.user, medicine)
        return ok({}, message='Medicine deactivated successfully')
    s = MedicineUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    medicine = svc.update_medicine(request.user, medicine, s.validated_data)
    return ok(format_medicine(medicine), message='Medicine updated successfully')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, RouteAccess('medicines')])
def stock(request, pk: int):
    s = StockUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    operation = s.validated_data['operation']
    medicine = svc.update_stock(request.user, pk, quantity=s.validated_data['quantity'], operation=operation)
    return ok(format_medicine(medicine), message=f"Stock {_STOCK_VERBS[operation]} successfully")
