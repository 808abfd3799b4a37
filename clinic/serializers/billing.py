from decimal import Decimal

from rest_framework import serializers

from clinic.models import Bill, BillItem, InsuranceClaim
from .common import CleanCharField, LenientDateField, iso, money
from .patient import patient_brief

ZERO = Decimal('0')


class BillItemSerializer(serializers.Serializer):
    description = CleanCharField(max_length=255)
    category = serializers.ChoiceField(choices=[c[0] for c in BillItem.CATEGORY_CHOICES], required=False)
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO)


class BillCreateSerializer(serializers.Serializer):
    patient = serializers.IntegerField()
    appointment = serializers.IntegerField(required=False, allow_null=True)
    items = BillItemSerializer(many=True, allow_empty=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False)
    paymentMethod = serializers.ChoiceField(choices=[c[0] for c in Bill.PAYMENT_METHOD_CHOICES], required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class BillUpdateSerializer(serializers.Serializer):
    items = BillItemSerializer(many=True, allow_empty=False, required=False)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=ZERO, required=False)
    paymentMethod = serializers.ChoiceField(choices=[c[0] for c in Bill.PAYMENT_METHOD_CHOICES], required=False)
    notes = CleanCharField(required=False, allow_blank=True)


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2,
        error_messages={'invalid': 'Valid payment amount is required'},
    )
    paymentMethod = serializers.ChoiceField(choices=[c[0] for c in Bill.PAYMENT_METHOD_CHOICES])
    transactionId = CleanCharField(max_length=64, required=False, allow_blank=True)
    notes = CleanCharField(max_length=255, required=False, allow_blank=True)


class InsuranceClaimSerializer(serializers.Serializer):
    claimNumber = CleanCharField(max_length=64)
    provider = CleanCharField(max_length=255)
    amountClaimed = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class InsuranceUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in InsuranceClaim.STATUS_CHOICES])
    approvedAmount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    rejectionReason = CleanCharField(max_length=255, required=False, allow_blank=True)


class BillListQuerySerializer(serializers.Serializer):
    patient = serializers.IntegerField(required=False)
    paymentStatus = serializers.ChoiceField(choices=[c[0] for c in Bill.STATUS_CHOICES], required=False)
    startDate = LenientDateField(required=False)
    endDate = LenientDateField(required=False)
    search = serializers.CharField(required=False)


def format_claim(claim: InsuranceClaim | None) -> dict | None:
    if claim is None:
        return None
    return {
        'claimNumber': claim.claim_number,
        'provider': claim.provider,
        'amountClaimed': money(claim.amount_claimed),
        'approvedAmount': money(claim.approved_amount),
        'status': claim.status,
        'submittedDate': iso(claim.submitted_date),
        'processedDate': iso(claim.processed_date),
        'rejectionReason': claim.rejection_reason,
    }


def format_bill(bill: Bill) -> dict:
    claim = InsuranceClaim.objects.filter(bill=bill).first()
    return {
        'id': bill.id,
        'billNumber': bill.bill_number,
        'patient': patient_brief(bill.patient),
        'appointment': bill.appointment_id,
        'billDate': iso(bill.bill_date),
        'items': [
            {
                'description': item.description,
                'category': item.category,
                'quantity': item.quantity,
                'unitPrice': money(item.unit_price),
                'amount': money(item.amount),
            }
            for item in bill.items.all()
        ],
        'subtotal': money(bill.subtotal),
        'discount': money(bill.discount),
        'tax': money(bill.tax),
        'totalAmount': money(bill.total_amount),
        'amountPaid': money(bill.amount_paid),
        'balance': money(bill.balance),
        'paymentStatus': bill.payment_status,
        'paymentMethod': bill.payment_method,
        'payments': [
            {
                'amount': money(p.amount),
                'paymentMethod': p.payment_method,
                'transactionId': p.transaction_id,
                'notes': p.notes,
                'paymentDate': iso(p.payment_date),
            }
            for p in bill.payments.all()
        ],
        'insuranceClaim': format_claim(claim),
        'generatedBy': (
            {'id': bill.generated_by.id, 'name': bill.generated_by.name, 'role': bill.generated_by.role}
            if bill.generated_by_id else None
        ),
        'notes': bill.notes,
        'createdAt': iso(bill.created_at),
        'updatedAt': iso(bill.updated_at),
    }
