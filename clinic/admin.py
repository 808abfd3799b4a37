"""
Django admin registrations for the clinic models.

Superusers can inspect and correct records through ``/admin/``.  Bed
counts, bill totals and stock levels are maintained by the API; they are
shown read-only here so the admin cannot put them out of step.
"""

from django.contrib import admin

from .models import (
    Admission,
    AuditEvent,
    Bed,
    Bill,
    BillItem,
    Doctor,
    InsuranceClaim,
    Medicine,
    Patient,
    Payment,
    Prescription,
    PrescriptionItem,
    Staff,
    User,
    Ward,
    Appointment,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'is_active', 'created_at')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'name', 'phone')
    exclude = ('password', 'reset_password_token', 'reset_password_expire')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('user', 'specialization', 'department', 'license_number', 'is_available')
    list_filter = ('department', 'is_available')
    search_fields = ('user__name', 'license_number', 'specialization')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_id', 'user', 'blood_group', 'created_at')
    list_filter = ('blood_group',)
    search_fields = ('patient_id', 'user__name', 'user__email')


class BedInline(admin.TabularInline):
    model = Bed
    extra = 0
    readonly_fields = ('bed_number', 'is_occupied', 'patient', 'admission_date')


@admin.register(Ward)
class WardAdmin(admin.ModelAdmin):
    list_display = ('ward_number', 'ward_name', 'ward_type', 'total_beds', 'available_beds', 'is_active')
    list_filter = ('ward_type', 'is_active')
    search_fields = ('ward_number', 'ward_name', 'department')
    readonly_fields = ('total_beds', 'available_beds')
    inlines = [BedInline]


@admin.register(Admission)
class AdmissionAdmin(admin.ModelAdmin):
    list_display = ('patient', 'ward', 'bed_number', 'admission_date', 'discharge_date')
    list_filter = ('ward',)


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = ('medicine_id', 'name', 'category', 'stock_quantity', 'reorder_level', 'expiry_date', 'is_active')
    list_filter = ('category', 'is_active')
    search_fields = ('medicine_id', 'name', 'generic_name', 'manufacturer')
    readonly_fields = ('stock_quantity', 'last_restocked')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('appointment_id', 'patient', 'doctor', 'appointment_date', 'start_time', 'status')
    list_filter = ('status', 'priority', 'type')
    search_fields = ('appointment_id', 'patient__patient_id', 'doctor__user__name')


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('prescription_id', 'patient', 'doctor', 'status', 'refills_used', 'refills_allowed', 'valid_until')
    list_filter = ('status',)
    search_fields = ('prescription_id', 'patient__patient_id')
    readonly_fields = ('refills_used',)
    inlines = [PrescriptionItemInline]


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ('amount', 'payment_method', 'transaction_id', 'notes', 'payment_date')


@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ('bill_number', 'patient', 'total_amount', 'amount_paid', 'balance', 'payment_status')
    list_filter = ('payment_status',)
    search_fields = ('bill_number', 'patient__patient_id')
    readonly_fields = ('subtotal', 'total_amount', 'amount_paid', 'balance', 'payment_status')
    inlines = [BillItemInline, PaymentInline]


@admin.register(InsuranceClaim)
class InsuranceClaimAdmin(admin.ModelAdmin):
    list_display = ('claim_number', 'bill', 'provider', 'amount_claimed', 'approved_amount', 'status')
    list_filter = ('status',)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('employee_id', 'user', 'designation', 'department', 'shift', 'is_active')
    list_filter = ('department', 'shift', 'employment_type', 'is_active')
    search_fields = ('employee_id', 'user__name', 'designation')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('user__email', 'action')
