"""
Read-only reports over appointments, wards and bills.

Every function returns plain data; money is left as ``Decimal`` and
rendered as a number by the JSON renderer.
"""
from __future__ import annotations

import datetime
from collections import Counter as Tally
from decimal import Decimal

from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from clinic.models import (
    Appointment, Bill, BillItem, Doctor, InsuranceClaim, Medicine, Patient, Prescription, Staff, Ward,
)
from clinic.services.medicines import LOW_STOCK

ZERO = Decimal('0.00')
CENT = Decimal('0.01')
LIVE_STATUSES = (Appointment.STATUS_SCHEDULED, Appointment.STATUS_CONFIRMED, Appointment.STATUS_IN_PROGRESS)


def _pct(part, whole) -> float:
    return round(float(part) / float(whole) * 100, 2) if whole else 0


def patient_visits(*, start=None, end=None, doctor=None, patient=None):
    qs = Appointment.objects.select_related('patient__user', 'doctor__user')
    if start:
        qs = qs.filter(appointment_date__gte=start)
    if end:
        qs = qs.filter(appointment_date__lte=end)
    if doctor:
        qs = qs.filter(doctor_id=doctor)
    if patient:
        qs = qs.filter(patient_id=patient)
    visits = list(qs.order_by('-appointment_date', 'start_time'))
    statuses = Tally(v.status for v in visits)
    stats = {
        'totalVisits': len(visits),
        'completed': statuses[Appointment.STATUS_COMPLETED],
        'scheduled': statuses[Appointment.STATUS_SCHEDULED],
        'cancelled': statuses[Appointment.STATUS_CANCELLED],
        'noShow': statuses[Appointment.STATUS_NO_SHOW],
        'byType': dict(Tally(v.type for v in visits)),
        'byPriority': dict(Tally(v.priority for v in visits)),
    }
    return visits, stats


def doctor_performance(*, start=None, end=None, doctor=None) -> list[dict]:
    appts = Q()
    if start:
        appts &= Q(appointments__appointment_date__gte=start)
    if end:
        appts &= Q(appointments__appointment_date__lte=end)
    qs = Doctor.objects.select_related('user')
    if doctor:
        qs = qs.filter(pk=doctor)
    qs = qs.annotate(
        total=Count('appointments', filter=appts),
        completed=Count('appointments', filter=appts & Q(appointments__status=Appointment.STATUS_COMPLETED)),
        cancelled=Count('appointments', filter=appts & Q(appointments__status=Appointment.STATUS_CANCELLED)),
        emergencies=Count('appointments', filter=appts & Q(appointments__priority='Emergency')),
        avg_fee=Avg('appointments__consultation_fee', filter=appts),
    ).filter(total__gt=0).order_by('-completed', 'id')
    return [
        {
            'doctorId': d.id,
            'doctorName': d.user.name,
            'specialization': d.specialization,
            'department': d.department,
            'totalAppointments': d.total,
            'completedAppointments': d.completed,
            'cancelledAppointments': d.cancelled,
            'emergencyCases': d.emergencies,
            'completionRate': _pct(d.completed, d.total),
            'avgConsultationFee': Decimal(d.avg_fee).quantize(CENT) if d.avg_fee is not None else None,
            'rating': float(d.rating),
        }
        for d in qs
    ]


def ward_usage(*, ward_type=None, department=None):
    qs = Ward.objects.select_related('nurse_in_charge').filter(is_active=True)
    if ward_type:
        qs = qs.filter(ward_type=ward_type)
    if department:
        qs = qs.filter(department__iexact=department)
    rows = []
    by_type: dict[str, dict] = {}
    for w in qs.order_by('ward_number'):
        occupied = w.total_beds - w.available_beds
        rows.append({
            'wardId': w.id,
            'wardNumber': w.ward_number,
            'wardName': w.ward_name,
            'wardType': w.ward_type,
            'department': w.department,
            'floor': w.floor,
            'totalBeds': w.total_beds,
            'occupiedBeds': occupied,
            'availableBeds': w.available_beds,
            'occupancyRate': _pct(occupied, w.total_beds),
            'dailyRate': w.daily_rate,
            'potentialRevenue': w.daily_rate * occupied,
            'nurseInCharge': w.nurse_in_charge.name if w.nurse_in_charge_id else 'Not Assigned',
            'gender': w.gender,
        })
        t = by_type.setdefault(w.ward_type, {'count': 0, 'totalBeds': 0, 'occupiedBeds': 0})
        t['count'] += 1
        t['totalBeds'] += w.total_beds
        t['occupiedBeds'] += occupied
    total = sum(r['totalBeds'] for r in rows)
    occupied = sum(r['occupiedBeds'] for r in rows)
    stats = {
        'totalWards': len(rows),
        'totalBeds': total,
        'occupiedBeds': occupied,
        'availableBeds': total - occupied,
        'averageOccupancyRate': _pct(occupied, total),
        'totalPotentialRevenue': sum((r['potentialRevenue'] for r in rows), ZERO),
        'byType': by_type,
    }
    return rows, stats


def revenue(*, start=None, end=None, category=None, payment_status=None):
    qs = Bill.objects.select_related('patient__user')
    if start:
        qs = qs.filter(bill_date__date__gte=start)
    if end:
        qs = qs.filter(bill_date__date__lte=end)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if category:
        qs = qs.filter(items__category=category).distinct()
    bills = list(qs.order_by('-bill_date', '-id'))
    ids = [b.id for b in bills]

    def total(field):
        return sum((getattr(b, field) for b in bills), ZERO)

    by_category = {
        row['category']: row['amount']
        for row in BillItem.objects.filter(bill_id__in=ids).values('category')
        .annotate(amount=Sum('amount')).order_by('category')
    }
    by_method: dict[str, Decimal] = {}
    for b in bills:
        if b.payment_method:
            by_method[b.payment_method] = by_method.get(b.payment_method, ZERO) + b.amount_paid
    statuses = Tally(b.payment_status for b in bills)
    claims = Tally(InsuranceClaim.objects.filter(bill_id__in=ids).values_list('status', flat=True))
    stats = {
        'totalBills': len(bills),
        'totalRevenue': total('total_amount'),
        'totalPaid': total('amount_paid'),
        'totalPending': total('balance'),
        'averageBillAmount': (total('total_amount') / len(bills)).quantize(CENT) if bills else ZERO,
        'byCategory': by_category,
        'byPaymentStatus': {
            'paid': statuses[Bill.STATUS_PAID],
            'unpaid': statuses[Bill.STATUS_UNPAID],
            'partiallyPaid': statuses[Bill.STATUS_PARTIAL],
            'refunded': statuses[Bill.STATUS_REFUNDED],
        },
        'byPaymentMethod': by_method,
        'discountGiven': total('discount'),
        'taxCollected': total('tax'),
        'insuranceClaims': {
            'total': sum(claims.values()),
            'approved': claims[InsuranceClaim.STATUS_APPROVED],
            'pending': claims[InsuranceClaim.STATUS_PENDING],
            'rejected': claims[InsuranceClaim.STATUS_REJECTED],
        },
    }
    return bills, stats


def _trend(today_value, week_total) -> float:
    daily = float(week_total) / 7
    return round((float(today_value) - daily) / daily * 100, 2) if daily else 0


def hospital_overview() -> dict:
    today = timezone.localdate()
    last_week = today - datetime.timedelta(days=7)
    beds = Ward.objects.filter(is_active=True).aggregate(total=Sum('total_beds'), available=Sum('available_beds'))
    total_beds = beds['total'] or 0
    available = beds['available'] or 0
    today_appts = Appointment.objects.filter(appointment_date=today, status__in=LIVE_STATUSES).count()
    week_appts = Appointment.objects.filter(appointment_date__gte=last_week, appointment_date__lt=today).count()
    today_revenue = Bill.objects.filter(bill_date__date=today).aggregate(s=Sum('amount_paid'))['s'] or ZERO
    week_revenue = Bill.objects.filter(
        bill_date__date__gte=last_week, bill_date__date__lt=today,
    ).aggregate(s=Sum('amount_paid'))['s'] or ZERO
    doctors = Doctor.objects.filter(is_available=True).count()
    return {
        'patients': {
            'total': Patient.objects.count(),
            'new': Patient.objects.filter(created_at__date__gte=last_week).count(),
        },
        'doctors': {'total': doctors, 'active': doctors},
        'appointments': {'today': today_appts, 'trend': _trend(today_appts, week_appts)},
        'beds': {
            'total': total_beds,
            'occupied': total_beds - available,
            'available': available,
            'occupancyRate': _pct(total_beds - available, total_beds),
        },
        'revenue': {'today': today_revenue, 'trend': _trend(today_revenue, week_revenue)},
        'alerts': {
            'lowStockMedicines': Medicine.objects.filter(LOW_STOCK, is_active=True).count(),
            'expiringMedicines': Medicine.objects.filter(
                is_active=True, expiry_date__gte=today, expiry_date__lte=today + datetime.timedelta(days=30),
            ).count(),
            'pendingPrescriptions': Prescription.objects.filter(status=Prescription.STATUS_PENDING).count(),
        },
        'staff': {'total': Staff.objects.filter(is_active=True).count()},
    }
