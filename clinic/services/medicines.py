"""
Medicine inventory and the stock ledger.

Stock never goes below zero.  All stock moves lock the affected medicine
rows (in primary key order, so two multi-line moves cannot deadlock) and
either apply every line or none.
"""
from __future__ import annotations

import calendar
import datetime
import logging
from collections import Counter as Tally

from django.db import transaction
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound

from clinic.exceptions import ConflictError
from clinic.models import Medicine
from clinic.services.audit import log_action
from clinic.services.ids import new_medicine_id

logger = logging.getLogger(__name__)

_FIELDS = {
    'name': 'name',
    'genericName': 'generic_name',
    'manufacturer': 'manufacturer',
    'category': 'category',
    'dosageForm': 'dosage_form',
    'strength': 'strength',
    'unitPrice': 'unit_price',
    'reorderLevel': 'reorder_level',
    'expiryDate': 'expiry_date',
    'batchNumber': 'batch_number',
    'supplier': 'supplier',
    'prescriptionRequired': 'prescription_required',
    'sideEffects': 'side_effects',
    'isActive': 'is_active',
}

LOW_STOCK = Q(stock_quantity__lte=F('reorder_level'))


def add_months(day: datetime.date, months: int) -> datetime.date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def get_medicine(pk) -> Medicine:
    medicine = Medicine.objects.filter(pk=pk).first()
    if medicine is None:
        raise NotFound('Medicine not found')
    return medicine


def list_medicines(*, search=None, category=None, stock_status=None, low_stock=None, expiring_soon=None):
    qs = Medicine.objects.filter(is_active=True)
    if category:
        qs = qs.filter(category=category)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(generic_name__icontains=search)
                       | Q(manufacturer__icontains=search))
    if low_stock or stock_status == 'Low Stock':
        qs = qs.filter(LOW_STOCK)
    if stock_status == 'Low Stock':
        qs = qs.filter(stock_quantity__gt=0)
    elif stock_status == 'Out of Stock':
        qs = qs.filter(stock_quantity=0)
    elif stock_status == 'In Stock':
        qs = qs.filter(stock_quantity__gt=F('reorder_level'))
    if expiring_soon:
        today = timezone.localdate()
        qs = qs.filter(expiry_date__gte=today, expiry_date__lte=add_months(today, 3))
    return qs.order_by('-created_at', '-id')


def create_medicine(actor, data: dict) -> Medicine:
    kwargs = {field: data[key] for key, field in _FIELDS.items() if key in data}
    medicine = Medicine.objects.create(
        medicine_id=new_medicine_id(),
        stock_quantity=data.get('stockQuantity', 0),
        **kwargs,
    )
    log_action(user=actor, action='medicine_create', obj=medicine, detail={'name': medicine.name})
    return medicine


def update_medicine(actor, medicine: Medicine, data: dict) -> Medicine:
    for key, field in _FIELDS.items():
        if key in data:
            setattr(medicine, field, data[key])
    medicine.save()
    log_action(user=actor, action='medicine_update', obj=medicine, detail={'fields': sorted(data.keys())})
    return medicine


def deactivate_medicine(actor, medicine: Medicine) -> None:
    medicine.is_active = False
    medicine.save(update_fields=['is_active', 'updated_at'])
    log_action(user=actor, action='medicine_deactivate', obj=medicine)


def update_stock(actor, pk, *, quantity: int, operation: str) -> Medicine:
    """Apply one ledger operation: ``add``, ``reduce`` or ``set``."""
    with transaction.atomic():
        medicine = Medicine.objects.select_for_update().filter(pk=pk).first()
        if medicine is None:
            raise NotFound('Medicine not found')
        before = medicine.stock_quantity
        if operation == 'add':
            medicine.stock_quantity += quantity
            medicine.last_restocked = timezone.now()
        elif operation == 'reduce':
            if quantity > medicine.stock_quantity:
                raise ConflictError(f"Insufficient stock. Available: {medicine.stock_quantity}")
            medicine.stock_quantity -= quantity
        elif operation == 'set':
            medicine.stock_quantity = quantity
        else:
            raise ConflictError('Invalid operation. Use: add, reduce, or set')
        medicine.save()
    log_action(user=actor, action='medicine_stock', obj=medicine,
               detail={'operation': operation, 'quantity': quantity, 'before': before,
                       'after': medicine.stock_quantity})
    logger.info('stock %s %s by %d: %d -> %d', medicine.medicine_id, operation, quantity,
                before, medicine.stock_quantity)
    return medicine


def check_stock(lines) -> None:
    """Verify that every ``(medicine, quantity)`` line can be served right now."""
    needed = Tally()
    by_pk = {}
    for medicine, quantity in lines:
        needed[medicine.pk] += quantity
        by_pk[medicine.pk] = medicine
    for pk, quantity in needed.items():
        medicine = by_pk[pk]
        if not medicine.is_active:
            raise ConflictError(f"Medicine {medicine.name} is not active")
        if medicine.stock_quantity < quantity:
            raise ConflictError(
                f"Insufficient stock for {medicine.name}. Available: {medicine.stock_quantity}"
            )


def dispense(lines) -> list[Medicine]:
    """Take the quantities of ``(medicine_id, quantity)`` lines out of stock.

    Must run inside a transaction.  Raises :class:`ConflictError` before
    any row is written if one line cannot be served.
    """
    needed = Tally()
    for medicine_id, quantity in lines:
        needed[medicine_id] += quantity
    locked = list(Medicine.objects.select_for_update().filter(pk__in=needed).order_by('pk'))
    if len(locked) != len(needed):
        raise NotFound('Medicine not found')
    check_stock((m, needed[m.pk]) for m in locked)
    for medicine in locked:
        medicine.stock_quantity -= needed[medicine.pk]
        medicine.save(update_fields=['stock_quantity', 'updated_at'])
    return locked


def low_stock():
    meds = list(Medicine.objects.filter(LOW_STOCK, is_active=True).order_by('stock_quantity', 'id'))
    stats = {
        'totalLowStock': len(meds),
        'criticalStock': sum(1 for m in meds if m.stock_quantity == 0),
        'needsReorder': sum(1 for m in meds if m.stock_quantity > 0),
    }
    return meds, stats


def expiring(months: int = 3):
    today = timezone.localdate()
    meds = list(
        Medicine.objects.filter(is_active=True, expiry_date__gte=today, expiry_date__lte=add_months(today, months))
        .order_by('expiry_date', 'id')
    )
    one_month = add_months(today, 1)
    stats = {
        'total': len(meds),
        'expiringSoon': sum(1 for m in meds if m.expiry_date <= one_month),
        'expiringLater': sum(1 for m in meds if m.expiry_date > one_month),
    }
    return meds, stats


def expired():
    return list(
        Medicine.objects.filter(is_active=True, expiry_date__lt=timezone.localdate(), stock_quantity__gt=0)
        .order_by('-expiry_date', 'id')
    )


def categories() -> list[str]:
    return list(Medicine.objects.order_by('category').values_list('category', flat=True).distinct())


def medicine_stats() -> dict:
    active = Medicine.objects.filter(is_active=True)
    today = timezone.localdate()
    value = active.aggregate(
        total=Sum(ExpressionWrapper(F('stock_quantity') * F('unit_price'),
                                    output_field=DecimalField(max_digits=14, decimal_places=2)))
    )['total']
    distribution = [
        {'category': row['category'], 'count': row['count'], 'totalStock': row['total_stock'] or 0}
        for row in active.values('category').annotate(count=Count('id'), total_stock=Sum('stock_quantity'))
        .order_by('category')
    ]
    return {
        'totalMedicines': active.count(),
        'lowStock': active.filter(LOW_STOCK).count(),
        'expiringSoon': active.filter(expiry_date__gte=today, expiry_date__lte=add_months(today, 3)).count(),
        'totalStockValue': value or 0,
        'categoryDistribution': distribution,
    }
