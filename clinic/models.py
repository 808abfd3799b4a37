"""
Database models for the hospital management backend.

These models capture the records the clinic works with: users and their
role profiles (doctors, patients, staff), the medicine inventory, wards
and their beds, appointments, prescriptions and bills.  Sub-documents
that are only ever read together with their parent (addresses, weekly
availability, medical history entries) are stored in JSON columns;
anything that is counted, locked or filtered on its own gets a table.
"""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models import F, Q


ZERO = Decimal('0.00')


class UserManager(BaseUserManager):
    """Manager for the email-keyed :class:`User`."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('The email must be set')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.ROLE_ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Login identity with a single role.

    Users sign in with their email address.  Accounts are never removed;
    they are switched off through ``is_active`` instead.
    """
    ROLE_ADMIN = 'Admin'
    ROLE_DOCTOR = 'Doctor'
    ROLE_NURSE = 'Nurse'
    ROLE_RECEPTIONIST = 'Receptionist'
    ROLE_PATIENT = 'Patient'
    ROLE_PHARMACIST = 'Pharmacist'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_NURSE, 'Nurse'),
        (ROLE_RECEPTIONIST, 'Receptionist'),
        (ROLE_PATIENT, 'Patient'),
        (ROLE_PHARMACIST, 'Pharmacist'),
    ]
    GENDER_CHOICES = [('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')]

    username = None
    first_name = None
    last_name = None

    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.JSONField(default=dict, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    # sha256 of the emailed token; the raw token is never stored
    reset_password_token = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    reset_password_expire = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    def get_full_name(self) -> str:
        return self.name

    def get_short_name(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"


class Counter(models.Model):
    """Named monotonically increasing sequence used for readable identifiers."""
    name = models.CharField(max_length=32, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class Doctor(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    specialization = models.CharField(max_length=120)
    qualification = models.CharField(max_length=255)
    experience = models.PositiveIntegerField(default=0)
    license_number = models.CharField(max_length=64, unique=True)
    department = models.CharField(max_length=120, db_index=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, default=ZERO)
    # [{"day": "Monday", "slots": [{"startTime": "09:00", "endTime": "12:00", "isAvailable": true}]}]
    availability = models.JSONField(default=list, blank=True)
    # [{"date": "2024-11-05", "startTime": "20:00", "endTime": "08:00"}]
    on_call_shifts = models.JSONField(default=list, blank=True)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=ZERO)
    total_ratings = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Dr. {self.user.name} ({self.specialization})"


class Patient(models.Model):
    BLOOD_GROUP_CHOICES = [(g, g) for g in ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    patient_id = models.CharField(max_length=20, unique=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, blank=True)
    emergency_contact = models.JSONField(default=dict, blank=True)
    # entries carry an "id" so they can be edited individually
    medical_history = models.JSONField(default=list, blank=True)
    allergies = models.JSONField(default=list, blank=True)
    current_medications = models.JSONField(default=list, blank=True)
    lab_reports = models.JSONField(default=list, blank=True)
    insurance_info = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self) -> str:
        return f"{self.patient_id} ({self.user.name})"


class Ward(models.Model):
    TYPE_CHOICES = [(t, t) for t in ('General', 'ICU', 'NICU', 'Private', 'Semi-Private', 'Emergency', 'Isolation')]
    GENDER_CHOICES = [('Male', 'Male'), ('Female', 'Female'), ('Mixed', 'Mixed')]

    ward_number = models.CharField(max_length=20, unique=True)
    ward_name = models.CharField(max_length=120)
    ward_type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    department = models.CharField(max_length=120, blank=True)
    floor = models.IntegerField(default=0)
    total_beds = models.PositiveIntegerField()
    # always equal to the number of unoccupied beds; recomputed on every bed move
    available_beds = models.PositiveIntegerField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    facilities = models.JSONField(default=list, blank=True)
    daily_rate = models.DecimalField(max_digits=10, decimal_places=2)
    nurse_in_charge = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='wards_in_charge'
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(check=Q(available_beds__lte=F('total_beds')), name='ward_available_lte_total'),
        ]

    def __str__(self) -> str:
        return f"{self.ward_number} {self.ward_name}"


class Bed(models.Model):
    ward = models.ForeignKey(Ward, on_delete=models.CASCADE, related_name='beds')
    bed_number = models.CharField(max_length=32)
    is_occupied = models.BooleanField(default=False)
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='beds')
    admission_date = models.DateTimeField(null=True, blank=True)
    expected_discharge_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['bed_number']
        unique_together = [('ward', 'bed_number')]

    def __str__(self) -> str:
        return self.bed_number


class Admission(models.Model):
    """One stay of a patient in a ward bed."""
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='admissions')
    ward = models.ForeignKey(Ward, null=True, blank=True, on_delete=models.SET_NULL, related_name='admissions')
    bed_number = models.CharField(max_length=32, blank=True)
    admission_date = models.DateTimeField()
    discharge_date = models.DateTimeField(null=True, blank=True)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['-admission_date', '-id']

    def __str__(self) -> str:
        return f"{self.patient_id} @ {self.bed_number}"


class Medicine(models.Model):
    CATEGORY_CHOICES = [(c, c) for c in (
        'Analgesic', 'Antibiotic', 'Anti-inflammatory', 'Antidiabetic', 'Antihypertensive',
        'Antihistamine', 'Cardiovascular', 'Gastrointestinal', 'Respiratory', 'Neurological',
        'Dermatological', 'Other',
    )]
    DOSAGE_FORM_CHOICES = [(c, c) for c in (
        'Tablet', 'Capsule', 'Syrup', 'Injection', 'Cream', 'Ointment', 'Drops', 'Inhaler', 'Other',
    )]

    medicine_id = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255, db_index=True)
    generic_name = models.CharField(max_length=255, blank=True)
    manufacturer = models.CharField(max_length=255)
    category = models.CharField(max_length=32, choices=CATEGORY_CHOICES, db_index=True)
    dosage_form = models.CharField(max_length=16, choices=DOSAGE_FORM_CHOICES, default='Tablet')
    strength = models.CharField(max_length=64, blank=True)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    stock_quantity = models.PositiveIntegerField(default=0)
    reorder_level = models.PositiveIntegerField(default=50)
    expiry_date = models.DateField()
    batch_number = models.CharField(max_length=64, blank=True)
    supplier = models.JSONField(default=dict, blank=True)
    prescription_required = models.BooleanField(default=True)
    side_effects = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    last_restocked = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['is_active', 'expiry_date']),
        ]

    @property
    def stock_status(self) -> str:
        if self.stock_quantity == 0:
            return 'Out of Stock'
        if self.stock_quantity <= self.reorder_level:
            return 'Low Stock'
        return 'In Stock'

    def __str__(self) -> str:
        return f"{self.name} {self.strength}".strip()


class Appointment(models.Model):
    TYPE_CHOICES = [(t, t) for t in ('Consultation', 'Follow-up', 'Emergency', 'Surgery')]
    STATUS_SCHEDULED = 'Scheduled'
    STATUS_CONFIRMED = 'Confirmed'
    STATUS_IN_PROGRESS = 'In-Progress'
    STATUS_COMPLETED = 'Completed'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_NO_SHOW = 'No-Show'
    STATUS_CHOICES = [(s, s) for s in (
        STATUS_SCHEDULED, STATUS_CONFIRMED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW,
    )]
    # appointments in these states no longer hold their slot
    RELEASED_STATUSES = (STATUS_CANCELLED, STATUS_COMPLETED)
    PRIORITY_CHOICES = [(p, p) for p in ('Normal', 'Urgent', 'Emergency')]
    PAYMENT_METHOD_CHOICES = [(m, m) for m in ('Cash', 'Card', 'Insurance', 'UPI', 'Other')]

    appointment_id = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='appointments')
    appointment_date = models.DateField()
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='Consultation')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='Normal', db_index=True)
    symptoms = models.JSONField(default=list, blank=True)
    diagnosis = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)
    consultation_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    paid = models.BooleanField(default=False)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES, blank=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'appointment_date', 'start_time']),
            models.Index(fields=['patient', 'appointment_date']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'appointment_date', 'start_time'],
                condition=~Q(status__in=['Cancelled', 'Completed']),
                name='appointment_live_slot_unique',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_id} {self.appointment_date} {self.start_time}"


class Prescription(models.Model):
    STATUS_PENDING = 'Pending'
    STATUS_PARTIAL = 'Partially-Filled'
    STATUS_FULFILLED = 'Fulfilled'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_CHOICES = [(s, s) for s in (STATUS_PENDING, STATUS_PARTIAL, STATUS_FULFILLED, STATUS_CANCELLED)]

    prescription_id = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='prescriptions')
    appointment = models.ForeignKey(
        Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions'
    )
    diagnosis = models.TextField()
    symptoms = models.JSONField(default=list, blank=True)
    lab_tests = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    refills_allowed = models.PositiveIntegerField(default=0)
    refills_used = models.PositiveIntegerField(default=0)
    valid_until = models.DateTimeField()
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(check=Q(refills_used__lte=F('refills_allowed')), name='prescription_refills_bounded'),
        ]

    def __str__(self) -> str:
        return self.prescription_id


class PrescriptionItem(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='items')
    medicine = models.ForeignKey(Medicine, on_delete=models.PROTECT, related_name='prescription_items')
    dosage = models.CharField(max_length=120)
    frequency = models.CharField(max_length=120)
    duration = models.CharField(max_length=120)
    instructions = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField()

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return f"{self.medicine_id} x{self.quantity}"


class Bill(models.Model):
    STATUS_UNPAID = 'Unpaid'
    STATUS_PARTIAL = 'Partially-Paid'
    STATUS_PAID = 'Paid'
    STATUS_REFUNDED = 'Refunded'
    STATUS_CHOICES = [(s, s) for s in (STATUS_UNPAID, STATUS_PARTIAL, STATUS_PAID, STATUS_REFUNDED)]
    PAYMENT_METHOD_CHOICES = [(m, m) for m in ('Cash', 'Card', 'UPI', 'Net Banking', 'Insurance', 'Cheque')]

    bill_number = models.CharField(max_length=32, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='bills')
    appointment = models.ForeignKey(
        Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='bills'
    )
    bill_date = models.DateTimeField(db_index=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    payment_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_UNPAID, db_index=True)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES, blank=True)
    generated_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='bills_generated'
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def recompute(self) -> None:
        """Refresh the derived money fields from items, adjustments and payments."""
        self.total_amount = self.subtotal - self.discount + self.tax
        self.balance = self.total_amount - self.amount_paid
        if self.balance == ZERO:
            self.payment_status = self.STATUS_PAID
        elif self.amount_paid > ZERO and self.balance > ZERO:
            self.payment_status = self.STATUS_PARTIAL
        else:
            self.payment_status = self.STATUS_UNPAID

    def __str__(self) -> str:
        return self.bill_number


class BillItem(models.Model):
    CATEGORY_CHOICES = [(c, c) for c in (
        'Consultation', 'Medicine', 'Lab Test', 'Imaging', 'Surgery', 'Room Charges', 'Emergency', 'Other',
    )]

    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='Other')
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:
        return self.description


class Payment(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=Bill.PAYMENT_METHOD_CHOICES)
    transaction_id = models.CharField(max_length=64, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    payment_date = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['payment_date', 'id']

    def __str__(self) -> str:
        return f"{self.bill_id}: {self.amount}"


class InsuranceClaim(models.Model):
    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    STATUS_PARTIAL = 'Partially-Approved'
    STATUS_CHOICES = [(s, s) for s in (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_PARTIAL)]
    PAYING_STATUSES = (STATUS_APPROVED, STATUS_PARTIAL)

    bill = models.OneToOneField(Bill, on_delete=models.CASCADE, related_name='insurance_claim')
    claim_number = models.CharField(max_length=64)
    provider = models.CharField(max_length=255)
    amount_claimed = models.DecimalField(max_digits=12, decimal_places=2)
    approved_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    submitted_date = models.DateTimeField()
    processed_date = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.claim_number} ({self.status})"


class Staff(models.Model):
    EMPLOYMENT_CHOICES = [(c, c) for c in ('Full-Time', 'Part-Time', 'Contract', 'Intern')]
    SHIFT_CHOICES = [(c, c) for c in ('Morning', 'Evening', 'Night', 'Rotational')]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='staff_record')
    employee_id = models.CharField(max_length=20, unique=True)
    designation = models.CharField(max_length=120)
    department = models.CharField(max_length=120, db_index=True)
    qualification = models.CharField(max_length=255, blank=True)
    joining_date = models.DateField()
    employment_type = models.CharField(max_length=16, choices=EMPLOYMENT_CHOICES, default='Full-Time')
    shift = models.CharField(max_length=16, choices=SHIFT_CHOICES, default='Morning')
    work_schedule = models.JSONField(default=list, blank=True)
    salary_basic = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    salary_allowances = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    supervisor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='supervised_staff'
    )
    skills = models.JSONField(default=list, blank=True)
    certifications = models.JSONField(default=list, blank=True)
    performance_rating = models.DecimalField(max_digits=3, decimal_places=2, null=True, blank=True)
    performance_review_date = models.DateTimeField(null=True, blank=True)
    performance_notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def salary_total(self) -> Decimal:
        return self.salary_basic + self.salary_allowances

    def __str__(self) -> str:
        return f"{self.employee_id} {self.designation}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]
