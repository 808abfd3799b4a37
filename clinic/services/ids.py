"""
Readable identifier generation.

Sequential identifiers come from the :class:`~clinic.models.Counter`
table.  The increment is a single ``UPDATE ... SET value = value + 1``
so two concurrent creations never receive the same number; the row is
locked until the surrounding transaction ends.
"""
from __future__ import annotations

import random
import time

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from clinic.models import Counter, Medicine, Patient


def next_sequence(name: str) -> int:
    with transaction.atomic():
        updated = Counter.objects.filter(name=name).update(value=F('value') + 1)
        if not updated:
            try:
                with transaction.atomic():
                    Counter.objects.create(name=name, value=1)
                    return 1
            except IntegrityError:
                # created by a concurrent request in the meantime
                Counter.objects.filter(name=name).update(value=F('value') + 1)
        return Counter.objects.get(name=name).value


def next_appointment_id() -> str:
    return f"APT{next_sequence('appointment'):06d}"


def next_prescription_id() -> str:
    return f"RX{next_sequence('prescription'):06d}"


def next_bill_number() -> str:
    return f"BILL-{timezone.now().year}-{next_sequence('bill'):06d}"


def next_employee_id() -> str:
    return f"EMP{next_sequence('staff'):05d}"


def _timestamp_id(prefix: str) -> str:
    suffix = str(int(time.time() * 1000))[-6:]
    return f"{prefix}{suffix}{random.randint(0, 999):03d}"


def new_patient_id(max_attempts: int = 10) -> str:
    """``PAT`` + last six digits of the clock + three random digits."""
    for _ in range(max_attempts):
        candidate = _timestamp_id('PAT')
        if not Patient.objects.filter(patient_id=candidate).exists():
            return candidate
    raise RuntimeError('could not allocate a unique patient id')


def new_medicine_id(max_attempts: int = 10) -> str:
    for _ in range(max_attempts):
        candidate = _timestamp_id('MED')
        if not Medicine.objects.filter(medicine_id=candidate).exists():
            return candidate
    raise RuntimeError('could not allocate a unique medicine id')
