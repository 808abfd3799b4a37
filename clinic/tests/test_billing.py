import pytest
from django.utils import timezone

from clinic.models import Bill, Payment

pytestmark = pytest.mark.django_db

ITEMS = [
    {'description': 'Consultation', 'category': 'Consultation', 'quantity': 1, 'unitPrice': '1000.00'},
    {'description': 'Blood panel', 'category': 'Lab Test', 'quantity': 3, 'unitPrice': '50.00'},
]


def create_bill(client, patient, **extra):
    payload = {'patient': patient.pk, 'items': ITEMS, 'discount': '50', 'tax': '110'}
    payload.update(extra)
    return client.post('/api/billing', payload, format='json')


def pay(client, bill_id, amount, method='Cash'):
    return client.post(f'/api/billing/{bill_id}/payment', {'amount': amount, 'paymentMethod': method}, format='json')


def test_bill_totals_and_full_payment(receptionist_client, patient):
    r = create_bill(receptionist_client, patient)
    assert r.status_code == 201
    bill = r.data['data']
    assert bill['billNumber'] == f'BILL-{timezone.now().year}-000001'
    assert bill['subtotal'] == 1150.0
    assert bill['totalAmount'] == 1210.0
    assert bill['balance'] == 1210.0
    assert bill['paymentStatus'] == 'Unpaid'
    assert [i['amount'] for i in bill['items']] == [1000.0, 150.0]

    r = pay(receptionist_client, bill['id'], '1210')
    assert r.status_code == 200
    assert r.data['data']['balance'] == 0.0
    assert r.data['data']['amountPaid'] == 1210.0
    assert r.data['data']['paymentStatus'] == 'Paid'
    assert len(r.data['data']['payments']) == 1


def test_partial_payments_accumulate(receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    r = pay(receptionist_client, bill_id, '200.10')
    assert r.data['data']['paymentStatus'] == 'Partially-Paid'
    r = pay(receptionist_client, bill_id, '1009.90', method='Card')
    assert r.data['data']['paymentStatus'] == 'Paid'
    bill = Bill.objects.get(pk=bill_id)
    assert bill.balance == 0
    assert bill.amount_paid + bill.balance == bill.total_amount


def test_overpayment_is_rejected(receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    r = pay(receptionist_client, bill_id, '1210.01')
    assert r.status_code == 400
    assert r.data['message'] == 'Payment amount (1210.01) exceeds balance (1210.00)'
    assert not Payment.objects.filter(bill_id=bill_id).exists()


@pytest.mark.parametrize('amount', ['0', '-5'])
def test_non_positive_payment_is_rejected(receptionist_client, patient, amount):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    r = pay(receptionist_client, bill_id, amount)
    assert r.status_code == 400
    assert r.data['message'] == 'Valid payment amount is required'


def test_discount_larger_than_total_is_rejected(receptionist_client, patient):
    r = create_bill(receptionist_client, patient, discount='5000')
    assert r.status_code == 400
    assert not Bill.objects.exists()


def test_bill_with_payments_cannot_be_deleted(admin_client, receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    pay(receptionist_client, bill_id, '10')
    r = admin_client.delete(f'/api/billing/{bill_id}')
    assert r.status_code == 400
    assert r.data['message'] == 'Cannot delete bill with recorded payments'


def test_update_recomputes_totals(receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    r = receptionist_client.put(f'/api/billing/{bill_id}', {'discount': '0', 'tax': '0'}, format='json')
    assert r.status_code == 200
    assert r.data['data']['totalAmount'] == 1150.0
    assert r.data['data']['balance'] == 1150.0


def test_paid_bill_cannot_be_updated(receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    pay(receptionist_client, bill_id, '1210')
    r = receptionist_client.put(f'/api/billing/{bill_id}', {'notes': 'late edit'}, format='json')
    assert r.status_code == 400


def test_insurance_claim_approval_books_payment(receptionist_client, admin_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    r = receptionist_client.post(f'/api/billing/{bill_id}/insurance',
                                 {'claimNumber': 'CLM-1', 'provider': 'CarePlus', 'amountClaimed': '1000'},
                                 format='json')
    assert r.status_code == 200
    assert r.data['data']['insuranceClaim']['status'] == 'Pending'

    # deciding a claim is reserved to admins
    r = receptionist_client.put(f'/api/billing/{bill_id}/insurance', {'status': 'Approved'}, format='json')
    assert r.status_code == 403

    r = admin_client.put(f'/api/billing/{bill_id}/insurance',
                         {'status': 'Partially-Approved', 'approvedAmount': '800'}, format='json')
    assert r.status_code == 200
    data = r.data['data']
    assert data['insuranceClaim']['approvedAmount'] == 800.0
    assert data['amountPaid'] == 800.0
    assert data['balance'] == 410.0
    assert data['paymentStatus'] == 'Partially-Paid'
    assert data['payments'][0]['paymentMethod'] == 'Insurance'

    r = admin_client.put(f'/api/billing/{bill_id}/insurance', {'status': 'Approved'}, format='json')
    assert r.status_code == 400


def test_patient_sees_only_own_bills(receptionist_client, patient, other_patient):
    from .conftest import client_for

    mine = create_bill(receptionist_client, patient).data['data']['id']
    theirs = create_bill(receptionist_client, other_patient).data['data']['id']
    client = client_for(patient.user)
    listed = client.get('/api/billing').data['data']
    assert [b['id'] for b in listed] == [mine]
    assert client.get(f'/api/billing/{theirs}').status_code == 403
    assert client.post('/api/billing', {}, format='json').status_code == 403


def test_billing_stats(receptionist_client, patient):
    bill_id = create_bill(receptionist_client, patient).data['data']['id']
    pay(receptionist_client, bill_id, '210')
    data = receptionist_client.get('/api/billing/stats').data['data']
    assert data['totalRevenue'] == 1210.0
    assert data['totalCollected'] == 210.0
    assert data['totalPending'] == 1000.0


def test_bill_numbers_are_sequential(receptionist_client, patient, other_patient):
    year = timezone.now().year
    numbers = [create_bill(receptionist_client, p).data['data']['billNumber'] for p in (patient, other_patient)]
    assert numbers == [f'BILL-{year}-000001', f'BILL-{year}-000002']
