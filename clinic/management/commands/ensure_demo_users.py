# clinic/management/commands/ensure_demo_users.py
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.models import Doctor, Patient, User
from clinic.services.ids import new_patient_id

DEMO_SET = [
    ("admin@hospital.local", "Demo Admin", User.ROLE_ADMIN),
    ("doctor@hospital.local", "Demo Doctor", User.ROLE_DOCTOR),
    ("nurse@hospital.local", "Demo Nurse", User.ROLE_NURSE),
    ("reception@hospital.local", "Demo Receptionist", User.ROLE_RECEPTIONIST),
    ("pharmacy@hospital.local", "Demo Pharmacist", User.ROLE_PHARMACIST),
    ("patient@hospital.local", "Demo Patient", User.ROLE_PATIENT),
]


class Command(BaseCommand):
    help = "Ensure one active demo account per role exists with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="P@ssw0rd1")

    @transaction.atomic
    def handle(self, *args, **opts):
        password = opts["password"]
        for email, name, role in DEMO_SET:
            u, created = User.objects.get_or_create(email=email, defaults={"name": name, "role": role})
            # reset password, role and active flag on every run
            u.set_password(password)
            u.role = role
            u.is_active = True
            if role == User.ROLE_ADMIN:
                u.is_staff = True
                u.is_superuser = True
            u.save()
            if role == User.ROLE_DOCTOR:
                Doctor.objects.get_or_create(user=u, defaults={
                    "specialization": "General Medicine",
                    "qualification": "MBBS",
                    "license_number": "DEMO-0001",
                    "department": "General",
                    "consultation_fee": Decimal("500.00"),
                })
            elif role == User.ROLE_PATIENT and not hasattr(u, "patient_profile"):
                Patient.objects.create(user=u, patient_id=new_patient_id())
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role}){' created' if created else ''}"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
