from decimal import Decimal

from rest_framework import serializers

from clinic.models import Medicine
from .common import CleanCharField, LenientDateField, iso, money

STOCK_OPERATIONS = ('add', 'reduce', 'set')
STOCK_STATUSES = ('In Stock', 'Low Stock', 'Out of Stock')


class SupplierSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255, required=False, allow_blank=True)
    contact = CleanCharField(max_length=64, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)


class MedicineSerializer(serializers.Serializer):
    name = CleanCharField(max_length=255)
    genericName = CleanCharField(max_length=255, required=False, allow_blank=True)
    manufacturer = CleanCharField(max_length=255)
    category = serializers.ChoiceField(choices=[c[0] for c in Medicine.CATEGORY_CHOICES])
    dosageForm = serializers.ChoiceField(choices=[c[0] for c in Medicine.DOSAGE_FORM_CHOICES], required=False)
    strength = CleanCharField(max_length=64, required=False, allow_blank=True)
    unitPrice = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    stockQuantity = serializers.IntegerField(min_value=0, required=False, default=0)
    reorderLevel = serializers.IntegerField(min_value=0, required=False, default=50)
    expiryDate = LenientDateField()
    batchNumber = CleanCharField(max_length=64, required=False, allow_blank=True)
    supplier = SupplierSerializer(required=False)
    prescriptionRequired = serializers.BooleanField(required=False, default=True)
    sideEffects = serializers.ListField(child=CleanCharField(max_length=255), required=False)


class MedicineUpdateSerializer(MedicineSerializer):
    """Stock is changed through the stock endpoint; everything else is patchable."""

    def get_fields(self):
        fields = super().get_fields()
        fields.pop('stockQuantity')
        fields['isActive'] = serializers.BooleanField(required=False)
        for field in fields.values():
            field.required = False
        return fields


class StockUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    operation = serializers.ChoiceField(
        choices=STOCK_OPERATIONS,
        error_messages={'invalid_choice': 'Invalid operation. Use: add, reduce, or set'},
    )


class MedicineListQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False)
    category = serializers.ChoiceField(choices=[c[0] for c in Medicine.CATEGORY_CHOICES], required=False)
    stockStatus = serializers.ChoiceField(choices=STOCK_STATUSES, required=False)
    lowStock = serializers.BooleanField(required=False, allow_null=True, default=None)
    expiringSoon = serializers.BooleanField(required=False, allow_null=True, default=None)


class ExpiringQuerySerializer(serializers.Serializer):
    months = serializers.IntegerField(min_value=1, max_value=60, required=False, default=3)


def format_medicine(m: Medicine) -> dict:
    return {
        'id': m.id,
        'medicineId': m.medicine_id,
        'name': m.name,
        'genericName': m.generic_name,
        'manufacturer': m.manufacturer,
        'category': m.category,
        'dosageForm': m.dosage_form,
        'strength': m.strength,
        'unitPrice': money(m.unit_price),
        'stockQuantity': m.stock_quantity,
        'reorderLevel': m.reorder_level,
        'stockStatus': m.stock_status,
        'expiryDate': iso(m.expiry_date),
        'batchNumber': m.batch_number,
        'supplier': m.supplier or {},
        'prescriptionRequired': m.prescription_required,
        'sideEffects': m.side_effects or [],
        'isActive': m.is_active,
        'lastRestocked': iso(m.last_restocked),
        'createdAt': iso(m.created_at),
        'updatedAt': iso(m.updated_at),
    }


def medicine_brief(m: Medicine) -> dict:
    return {'id': m.id, 'medicineId': m.medicine_id, 'name': m.name, 'strength': m.strength,
            'unitPrice': money(m.unit_price)}
