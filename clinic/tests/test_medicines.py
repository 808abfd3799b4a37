import datetime
import re

import pytest
from django.utils import timezone

from clinic.models import Medicine

from .conftest import make_medicine

pytestmark = pytest.mark.django_db


def stock(client, medicine, quantity, operation):
    return client.put(f'/api/medicines/{medicine.pk}/stock', {'quantity': quantity, 'operation': operation},
                      format='json')


def test_create_medicine(pharmacist_client):
    expiry = (timezone.localdate() + datetime.timedelta(days=400)).isoformat()
    r = pharmacist_client.post('/api/medicines', {
        'name': 'Amoxicillin', 'manufacturer': 'Acme', 'category': 'Antibiotic', 'dosageForm': 'Capsule',
        'strength': '500mg', 'unitPrice': '12.50', 'stockQuantity': 10, 'reorderLevel': 5, 'expiryDate': expiry,
    }, format='json')
    assert r.status_code == 201
    data = r.data['data']
    assert re.fullmatch(r'MED\d{9}', data['medicineId'])
    assert data['stockQuantity'] == 10
    assert data['unitPrice'] == 12.5
    assert data['stockStatus'] == 'In Stock'


def test_reduce_beyond_stock_fails_and_leaves_stock_unchanged(pharmacist_client):
    med = make_medicine(stock=10)
    r = stock(pharmacist_client, med, 4, 'reduce')
    assert r.status_code == 200
    assert r.data['data']['stockQuantity'] == 6
    assert r.data['message'] == 'Stock reduced successfully'

    r = stock(pharmacist_client, med, 7, 'reduce')
    assert r.status_code == 400
    assert r.data['message'] == 'Insufficient stock. Available: 6'
    med.refresh_from_db()
    assert med.stock_quantity == 6


def test_add_and_set(pharmacist_client):
    med = make_medicine(stock=3)
    r = stock(pharmacist_client, med, 7, 'add')
    assert r.data['data']['stockQuantity'] == 10
    med.refresh_from_db()
    assert med.last_restocked is not None

    r = stock(pharmacist_client, med, 2, 'set')
    assert r.data['data']['stockQuantity'] == 2
    assert r.data['data']['stockStatus'] == 'Low Stock'


def test_unknown_stock_operation(pharmacist_client):
    med = make_medicine()
    r = stock(pharmacist_client, med, 1, 'burn')
    assert r.status_code == 400
    assert 'Invalid operation. Use: add, reduce, or set' in r.data['message']


def test_quantity_must_be_positive(pharmacist_client):
    med = make_medicine()
    assert stock(pharmacist_client, med, 0, 'add').status_code == 400


def test_update_ignores_stock_quantity(pharmacist_client):
    med = make_medicine(stock=10)
    r = pharmacist_client.put(f'/api/medicines/{med.pk}', {'stockQuantity': 999, 'strength': '650mg'},
                              format='json')
    assert r.status_code == 200
    med.refresh_from_db()
    assert med.stock_quantity == 10
    assert med.strength == '650mg'


def test_delete_deactivates(admin_client):
    med = make_medicine()
    r = admin_client.delete(f'/api/medicines/{med.pk}')
    assert r.status_code == 200
    assert Medicine.objects.get(pk=med.pk).is_active is False
    listed = admin_client.get('/api/medicines').data['data']
    assert med.pk not in [m['id'] for m in listed]


def test_alerts(pharmacist_client):
    today = timezone.localdate()
    make_medicine('Lowdose', stock=2, reorder=5)
    make_medicine('Empty', stock=0, reorder=5)
    make_medicine('Plenty', stock=100, reorder=5)
    make_medicine('Soon', stock=100, expiry_date=today + datetime.timedelta(days=10))
    make_medicine('Gone', stock=100, expiry_date=today - datetime.timedelta(days=1))

    low = pharmacist_client.get('/api/medicines/alerts/low-stock').data
    assert {m['name'] for m in low['data']} == {'Lowdose', 'Empty'}
    assert low['stats'] == {'totalLowStock': 2, 'criticalStock': 1, 'needsReorder': 1}

    expiring = pharmacist_client.get('/api/medicines/alerts/expiring', {'months': 1}).data
    assert [m['name'] for m in expiring['data']] == ['Soon']

    expired = pharmacist_client.get('/api/medicines/alerts/expired').data
    assert [m['name'] for m in expired['data']] == ['Gone']


def test_list_filters_by_stock_status(doctor_client):
    make_medicine('Lowdose', stock=2, reorder=5)
    make_medicine('Plenty', stock=100, reorder=5)
    r = doctor_client.get('/api/medicines', {'stockStatus': 'Low Stock'})
    assert r.status_code == 200
    assert [m['name'] for m in r.data['data']] == ['Lowdose']
    assert r.data['total'] == 1


def test_categories_and_stats(pharmacist_client):
    make_medicine('A', stock=10)
    make_medicine('B', stock=0, category='Antibiotic')
    assert pharmacist_client.get('/api/medicines/categories').status_code == 200
    stats = pharmacist_client.get('/api/medicines/stats').data['data']
    assert stats['totalStockValue'] == 25.0
