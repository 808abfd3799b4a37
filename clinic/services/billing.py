"""
Bills, payments and insurance claims.

Money is kept as two-place ``Decimal`` throughout.  The derived columns
(total, balance, payment status) are recomputed by :meth:`Bill.recompute`
inside the same transaction as any change that feeds them, with the bill
row locked.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from clinic.exceptions import ConflictError, RouteAccessDenied
from clinic.models import Appointment, Bill, BillItem, InsuranceClaim, Patient, Payment
from clinic.services.audit import log_action
from clinic.services.ids import next_bill_number

logger = logging.getLogger(__name__)

User = get_user_model()

ZERO = Decimal('0.00')


def _base_qs():
    return Bill.objects.select_related('patient__user', 'generated_by')


def get_bill(actor, pk) -> Bill:
    bill = _base_qs().filter(pk=pk).first()
    if bill is None:
        raise NotFound('Bill not found')
    if actor.role == User.ROLE_PATIENT and bill.patient.user_id != actor.id:
        raise RouteAccessDenied('Not authorized to access this bill')
    return bill


def _lock_bill(pk) -> Bill:
    bill = Bill.objects.select_for_update().filter(pk=pk).first()
    if bill is None:
        raise NotFound('Bill not found')
    return bill


def list_bills(actor, *, patient=None, payment_status=None, start=None, end=None, search=None):
    qs = _base_qs()
    if actor.role == User.ROLE_PATIENT:
        qs = qs.filter(patient__user=actor)
    if patient:
        qs = qs.filter(patient_id=patient)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if start:
        qs = qs.filter(bill_date__date__gte=start)
    if end:
        qs = qs.filter(bill_date__date__lte=end)
    if search:
        qs = qs.filter(Q(bill_number__icontains=search) | Q(patient__user__name__icontains=search))
    return qs.order_by('-bill_date', '-id')


def _apply_items(bill: Bill, items: list[dict]) -> None:
    bill.items.all().delete()
    rows = []
    subtotal = ZERO
    for item in items:
        quantity = item.get('quantity', 1)
        amount = item['unitPrice'] * quantity
        subtotal += amount
        rows.append(BillItem(
            bill=bill,
            description=item['description'],
            category=item.get('category', 'Other'),
            quantity=quantity,
            unit_price=item['unitPrice'],
            amount=amount,
        ))
    BillItem.objects.bulk_create(rows)
    bill.subtotal = subtotal


def _check_total(bill: Bill) -> None:
    bill.recompute()
    if bill.total_amount < ZERO:
        raise ValidationError({'discount': ['Discount cannot exceed subtotal plus tax.']})
    if bill.balance < ZERO:
        raise ConflictError('Bill total cannot be lower than the amount already paid')


def create_bill(actor, data: dict) -> Bill:
    patient = Patient.objects.filter(pk=data['patient']).first()
    if patient is None:
        raise NotFound('Patient not found')
    appointment = None
    if data.get('appointment'):
        appointment = Appointment.objects.filter(pk=data['appointment']).first()
        if appointment is None:
            raise NotFound('Appointment not found')

    with transaction.atomic():
        bill = Bill.objects.create(
            bill_number=next_bill_number(),
            patient=patient,
            appointment=appointment,
            bill_date=timezone.now(),
            discount=data.get('discount') or ZERO,
            tax=data.get('tax') or ZERO,
            payment_method=data.get('paymentMethod', ''),
            notes=data.get('notes', ''),
            generated_by=actor,
        )
        _apply_items(bill, data['items'])
        _check_total(bill)
        bill.save()
    log_action(user=actor, action='bill_create', obj=bill,
               detail={'billNumber': bill.bill_number, 'total': str(bill.total_amount)})
    return bill


def update_bill(actor, pk, data: dict) -> Bill:
    with transaction.atomic():
        bill = _lock_bill(pk)
        if bill.payment_status in (Bill.STATUS_PAID, Bill.STATUS_REFUNDED):
            raise ConflictError('Cannot update a bill that has been paid')
        if 'items' in data:
            _apply_items(bill, data['items'])
        for key, field in (('discount', 'discount'), ('tax', 'tax'),
                           ('paymentMethod', 'payment_method'), ('notes', 'notes')):
            if key in data:
                setattr(bill, field, data[key])
        _check_total(bill)
        bill.save()
    log_action(user=actor, action='bill_update', obj=bill, detail={'fields': sorted(data.keys())})
    return bill


def delete_bill(actor, pk) -> None:
    with transaction.atomic():
        bill = _lock_bill(pk)
        if bill.amount_paid > ZERO or bill.payments.exists():
            raise ConflictError('Cannot delete bill with recorded payments')
        log_action(user=actor, action='bill_delete', obj=bill, detail={'billNumber': bill.bill_number})
        bill.delete()


def _take_payment(bill: Bill, amount: Decimal, method: str, *, transaction_id: str = '', notes: str = '') -> Payment:
    if amount <= ZERO:
        raise ValidationError('Valid payment amount is required')
    if amount > bill.balance:
        raise ConflictError(f"Payment amount ({amount}) exceeds balance ({bill.balance})")
    payment = Payment.objects.create(
        bill=bill, amount=amount, payment_method=method, transaction_id=transaction_id, notes=notes,
    )
    bill.amount_paid += amount
    bill.payment_method = method
    bill.recompute()
    bill.save()
    return payment


def record_payment(actor, pk, *, amount: Decimal, method: str, transaction_id: str = '', notes: str = '') -> Bill:
    with transaction.atomic():
        bill = _lock_bill(pk)
        _take_payment(bill, amount, method, transaction_id=transaction_id, notes=notes)
    log_action(user=actor, action='bill_payment', obj=bill,
               detail={'amount': str(amount), 'method': method, 'balance': str(bill.balance)})
    logger.info('payment of %s recorded on %s, balance %s', amount, bill.bill_number, bill.balance)
    return bill


def submit_claim(actor, pk, *, claim_number: str, provider: str, amount_claimed: Decimal) -> Bill:
    with transaction.atomic():
        bill = _lock_bill(pk)
        if InsuranceClaim.objects.filter(bill=bill).exists():
            raise ConflictError('Insurance claim already submitted for this bill')
        if amount_claimed > bill.balance:
            raise ConflictError(f"Amount claimed ({amount_claimed}) exceeds balance ({bill.balance})")
        InsuranceClaim.objects.create(
            bill=bill,
            claim_number=claim_number,
            provider=provider,
            amount_claimed=amount_claimed,
            submitted_date=timezone.now(),
        )
    log_action(user=actor, action='insurance_submit', obj=bill,
               detail={'claimNumber': claim_number, 'amount': str(amount_claimed)})
    return bill


def update_claim(actor, pk, *, status: str, approved_amount: Decimal | None = None,
                 rejection_reason: str = '') -> Bill:
    """Record the insurer's decision.  An approval is booked as a payment."""
    with transaction.atomic():
        bill = _lock_bill(pk)
        claim = InsuranceClaim.objects.select_for_update().filter(bill=bill).first()
        if claim is None:
            raise NotFound('Bill or insurance claim not found')
        if claim.status in InsuranceClaim.PAYING_STATUSES:
            raise ConflictError('Insurance claim has already been paid out')
        claim.status = status
        claim.processed_date = timezone.now()
        if status in InsuranceClaim.PAYING_STATUSES:
            amount = approved_amount if approved_amount is not None else claim.amount_claimed
            claim.approved_amount = amount
            _take_payment(bill, amount, 'Insurance', notes=f"Insurance claim approved - {claim.claim_number}")
        elif status == InsuranceClaim.STATUS_REJECTED:
            claim.rejection_reason = rejection_reason or ''
        claim.save()
    log_action(user=actor, action='insurance_update', obj=bill,
               detail={'status': status, 'approvedAmount': str(claim.approved_amount)})
    return bill


def billing_stats(*, start=None, end=None) -> dict:
    qs = Bill.objects.all()
    if start:
        qs = qs.filter(bill_date__date__gte=start)
    if end:
        qs = qs.filter(bill_date__date__lte=end)
    totals = qs.aggregate(revenue=Sum('total_amount'), collected=Sum('amount_paid'), pending=Sum('balance'))
    by_status = (
        qs.values('payment_status').annotate(count=Count('id'), amount=Sum('total_amount'))
        .order_by('payment_status')
    )
    by_method = (
        qs.exclude(payment_method='').values('payment_method')
        .annotate(count=Count('id'), amount=Sum('amount_paid')).order_by('payment_method')
    )
    return {
        'totalBills': qs.count(),
        'totalRevenue': totals['revenue'] or ZERO,
        'totalCollected': totals['collected'] or ZERO,
        'totalPending': totals['pending'] or ZERO,
        'paymentStatusBreakdown': [
            {'status': row['payment_status'], 'count': row['count'], 'amount': row['amount'] or ZERO}
            for row in by_status
        ],
        'paymentMethodBreakdown': [
            {'method': row['payment_method'], 'count': row['count'], 'amount': row['amount'] or ZERO}
            for row in by_method
        ],
    }
