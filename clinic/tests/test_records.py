"""
Integration tests for patient, doctor and staff records and the reports.

These use Django REST Framework's APIClient within the APITestCase base
class; each test case builds its own users in ``setUp``.
"""

from decimal import Decimal

from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import Doctor, Patient, Staff, User
from ..services.wards import allocate_bed, create_ward
from .conftest import client_for, make_patient, make_user


class PatientRecordTests(APITestCase):
    def setUp(self) -> None:
        self.admin = make_user(User.ROLE_ADMIN, email='admin@hospital.test')
        self.desk = client_for(make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test'))
        doctor_user = make_user(User.ROLE_DOCTOR, email='doc@hospital.test', name='Dana Doc')
        self.doctor = Doctor.objects.create(
            user=doctor_user, specialization='General', qualification='MBBS', experience=3,
            license_number='LIC-2001', department='General', consultation_fee=Decimal('300.00'),
        )
        self.doc = client_for(doctor_user)
        self.nurse = client_for(make_user(User.ROLE_NURSE, email='nurse@hospital.test'))
        self.patient = make_patient('pat@hospital.test', name='Paula Pat')
        self.other = make_patient('other@hospital.test', name='Otto Other')
        self.me = client_for(self.patient.user)

    def test_receptionist_registers_patient_with_generated_password(self):
        r = self.desk.post('/api/patients', {
            'name': 'New Comer', 'email': 'NEW@hospital.test', 'phone': '5550111',
            'bloodGroup': 'O+', 'allergies': ['Penicillin'],
            'emergencyContact': {'name': 'Kin', 'relationship': 'Sibling', 'phone': '5550112'},
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        self.assertTrue(r.data['initialPassword'])
        data = r.data['data']
        self.assertRegex(data['patientId'], r'^PAT\d{9}$')
        self.assertEqual(data['bloodGroup'], 'O+')
        self.assertEqual(data['allergies'], ['Penicillin'])
        self.assertEqual(data['user']['email'], 'new@hospital.test')
        login = APIClient().post('/api/auth/login', {
            'email': 'new@hospital.test', 'password': r.data['initialPassword'],
        }, format='json')
        self.assertEqual(login.status_code, status.HTTP_200_OK)

    def test_profile_for_existing_patient_account(self):
        bare = make_user(User.ROLE_PATIENT, email='bare@hospital.test', name='Bare Account')
        r = self.desk.get('/api/patients/available-users')
        self.assertEqual([u['email'] for u in r.data['data']], ['bare@hospital.test'])

        r = self.desk.post('/api/patients', {'userId': bare.pk, 'bloodGroup': 'A-'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('initialPassword', r.data)
        r = self.desk.post('/api/patients', {'userId': bare.pk}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'Patient profile already exists for this user')

    def test_create_needs_user_or_account_fields(self):
        r = self.desk.post('/api/patients', {'name': 'Only Name'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['success'])

    def test_doctor_cannot_register_patients(self):
        r = self.doc.post('/api/patients', {'name': 'X', 'email': 'x@hospital.test'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_patient_sees_only_own_record(self):
        r = self.me.get('/api/patients')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in r.data['data']], [self.patient.pk])

        r = self.me.get(f'/api/patients/{self.other.pk}')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(r.data['message'], 'Not authorized to access this patient')

        r = self.me.get(f'/api/patients/{self.patient.pk}')
        self.assertEqual(r.data['data']['admissionHistory'], [])

    def test_staff_search_by_name(self):
        r = self.desk.get('/api/patients', {'search': 'otto'})
        self.assertEqual([p['id'] for p in r.data['data']], [self.other.pk])
        self.assertEqual(r.data['total'], 1)

    def test_medical_history_lifecycle(self):
        base = f'/api/patients/{self.patient.pk}/medical-history'
        r = self.doc.post(base, {'condition': 'Hypertension', 'diagnosedDate': '2023-04-01'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        entry = r.data['data']
        self.assertEqual(entry['status'], 'Active')
        self.assertEqual(entry['diagnosedDate'], '2023-04-01')

        r = self.nurse.put(f"{base}/{entry['id']}", {'status': 'Chronic'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['status'], 'Chronic')
        self.assertEqual(r.data['data']['condition'], 'Hypertension')

        r = self.doc.delete(f"{base}/{entry['id']}")
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.medical_history, [])

        r = self.doc.delete(f"{base}/{entry['id']}")
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['message'], 'Medical history entry not found')

    def test_receptionist_cannot_write_clinical_entries(self):
        r = self.desk.post(f'/api/patients/{self.patient.pk}/medical-history', {'condition': 'Flu'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_lab_report_and_stats(self):
        r = self.doc.post(f'/api/patients/{self.patient.pk}/lab-report', {
            'testName': 'CBC', 'date': '2024-02-10', 'results': 'normal',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertTrue(r.data['data']['id'])

        r = self.me.get(f'/api/patients/{self.patient.pk}/stats')
        stats = r.data['data']['stats']
        self.assertEqual(stats['labReportsCount'], 1)
        self.assertEqual(stats['totalAppointments'], 0)
        self.assertEqual(stats['outstandingBalance'], 0)

        r = self.me.get(f'/api/patients/{self.patient.pk}/medical-records')
        self.assertEqual(r.status_code, status.HTTP_200_OK)

    def test_admin_deactivates_patient(self):
        r = client_for(self.admin).delete(f'/api/patients/{self.other.pk}')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.other.user.refresh_from_db()
        self.assertFalse(self.other.user.is_active)
        self.assertTrue(Patient.objects.filter(pk=self.other.pk).exists())
        ids = [p['id'] for p in self.desk.get('/api/patients').data['data']]
        self.assertNotIn(self.other.pk, ids)

    def test_admitted_patient_cannot_be_deactivated(self):
        ward = create_ward(self.admin, {
            'wardNumber': 'W9', 'wardName': 'Nine', 'wardType': 'General', 'totalBeds': 1,
            'dailyRate': Decimal('100.00'),
        })
        allocate_bed(self.admin, ward.pk, patient_pk=self.other.pk)
        r = client_for(self.admin).delete(f'/api/patients/{self.other.pk}')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'Patient is currently admitted to a ward')


class DoctorRecordTests(APITestCase):
    def setUp(self) -> None:
        self.admin = client_for(make_user(User.ROLE_ADMIN, email='admin@hospital.test'))
        self.doctor_user = make_user(User.ROLE_DOCTOR, email='doc@hospital.test', name='Dana Doc')
        self.payload = {
            'userId': self.doctor_user.pk, 'specialization': 'Neurology', 'qualification': 'MD',
            'experience': 12, 'licenseNumber': 'LIC-3001', 'department': 'Neurology',
            'consultationFee': '800.00',
        }

    def test_admin_creates_and_deactivates_doctor(self):
        r = self.admin.post('/api/doctors', self.payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        self.assertEqual(r.data['data']['consultationFee'], 800.0)
        self.assertTrue(r.data['data']['isAvailable'])
        doctor_id = r.data['data']['id']

        r = self.admin.post('/api/doctors', self.payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'Doctor profile already exists for this user')

        r = self.admin.delete(f'/api/doctors/{doctor_id}')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.doctor_user.refresh_from_db()
        self.assertFalse(self.doctor_user.is_active)
        self.assertEqual(self.admin.get('/api/doctors').data['data'], [])

    def test_profile_requires_doctor_role(self):
        nurse = make_user(User.ROLE_NURSE, email='nurse@hospital.test')
        r = self.admin.post('/api/doctors', {**self.payload, 'userId': nurse.pk}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'User must have the Doctor role')

    def test_license_number_is_unique(self):
        self.admin.post('/api/doctors', self.payload, format='json')
        second = make_user(User.ROLE_DOCTOR, email='doc2@hospital.test')
        r = self.admin.post('/api/doctors', {**self.payload, 'userId': second.pk}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'License number already registered')

    def test_doctor_sets_own_availability_only(self):
        mine = self.admin.post('/api/doctors', self.payload, format='json').data['data']['id']
        other_user = make_user(User.ROLE_DOCTOR, email='doc2@hospital.test')
        theirs = self.admin.post('/api/doctors', {
            **self.payload, 'userId': other_user.pk, 'licenseNumber': 'LIC-3002',
        }, format='json').data['data']['id']
        week = {'availability': [{'day': 'Monday', 'slots': [{'startTime': '09:00', 'endTime': '12:00'}]}]}

        me = client_for(self.doctor_user)
        r = me.put(f'/api/doctors/{mine}/availability', week, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['availability'][0]['slots'][0]['isAvailable'], True)

        r = me.put(f'/api/doctors/{theirs}/availability', week, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_adds_on_call_shift(self):
        doctor_id = self.admin.post('/api/doctors', self.payload, format='json').data['data']['id']
        r = self.admin.post(f'/api/doctors/{doctor_id}/oncall', {
            'date': '2024-12-24', 'startTime': '20:00', 'endTime': '23:59',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(r.data['data']['onCallShifts'], [
            {'date': '2024-12-24', 'startTime': '20:00', 'endTime': '23:59'},
        ])
        r = client_for(self.doctor_user).post(f'/api/doctors/{doctor_id}/oncall', {
            'date': '2024-12-25', 'startTime': '20:00', 'endTime': '23:59',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)


    def test_available_doctor_users(self):
        r = self.admin.get('/api/doctors/available-users')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([u['email'] for u in r.data['data']], ['doc@hospital.test'])

        self.admin.post('/api/doctors', self.payload, format='json')
        r = self.admin.get('/api/doctors/available-users')
        self.assertEqual(r.data['count'], 0)

        desk = client_for(make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test'))
        self.assertEqual(desk.get('/api/doctors/available-users').status_code, status.HTTP_403_FORBIDDEN)

    def test_schedule_combines_availability_and_on_call(self):
        doctor_id = self.admin.post('/api/doctors', self.payload, format='json').data['data']['id']
        client_for(self.doctor_user).put(f'/api/doctors/{doctor_id}/availability', {
            'availability': [{'day': 'Friday', 'slots': [{'startTime': '14:00', 'endTime': '16:00'}]}],
        }, format='json')
        self.admin.post(f'/api/doctors/{doctor_id}/oncall', {
            'date': '2024-12-24', 'startTime': '20:00', 'endTime': '23:59',
        }, format='json')

        patient = make_patient('pat@hospital.test')
        r = client_for(patient.user).get(f'/api/doctors/{doctor_id}/schedule')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data['data']
        self.assertEqual(data['name'], 'Dana Doc')
        self.assertEqual(data['availability'][0]['day'], 'Friday')
        self.assertEqual(data['onCallShifts'][0]['date'], '2024-12-24')

        self.assertEqual(self.admin.get('/api/doctors/999/schedule').status_code, status.HTTP_404_NOT_FOUND)
        pharmacist = client_for(make_user(User.ROLE_PHARMACIST, email='rx@hospital.test'))
        self.assertEqual(pharmacist.get(f'/api/doctors/{doctor_id}/schedule').status_code,
                         status.HTTP_403_FORBIDDEN)

    def test_doctor_appointments_newest_first_and_patient_scoped(self):
        doctor_id = self.admin.post('/api/doctors', self.payload, format='json').data['data']['id']
        desk = client_for(make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test'))
        first = make_patient('one@hospital.test', name='First Patient')
        second = make_patient('two@hospital.test', name='Second Patient')
        for patient, day in ((first, '2024-11-04'), (second, '2024-11-06')):
            r = desk.post('/api/appointments', {
                'patient': patient.pk, 'doctor': doctor_id, 'appointmentDate': day,
                'timeSlot': {'startTime': '09:00', 'endTime': '09:30'},
            }, format='json')
            self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)

        r = desk.get(f'/api/doctors/{doctor_id}/appointments')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['count'], 2)
        self.assertEqual([a['appointmentDate'] for a in r.data['data']], ['2024-11-06', '2024-11-04'])

        r = client_for(first.user).get(f'/api/doctors/{doctor_id}/appointments')
        self.assertEqual([a['patient']['id'] for a in r.data['data']], [first.pk])


class StaffRecordTests(APITestCase):
    def setUp(self) -> None:
        self.admin = client_for(make_user(User.ROLE_ADMIN, email='admin@hospital.test'))
        self.nurse = make_user(User.ROLE_NURSE, email='nurse@hospital.test', name='Nia Nurse')
        self.clerk = make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test', name='Rex Desk')

    def hire(self, user, **extra):
        payload = {
            'userId': user.pk, 'designation': 'Staff Nurse', 'department': 'Emergency',
            'joiningDate': '2023-06-01', 'shift': 'Night',
        }
        payload.update(extra)
        return self.admin.post('/api/staff', payload, format='json')

    def test_create_and_list(self):
        r = self.admin.get('/api/staff/available-users')
        self.assertEqual(r.data['count'], 2)

        r = self.hire(self.nurse, salary={'basic': '40000', 'allowances': '5000'})
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        data = r.data['data']
        self.assertEqual(data['employeeId'], 'EMP00001')
        self.assertEqual(data['user']['role'], 'Nurse')
        self.assertEqual(data['salary']['total'], 45000.0)

        r = self.hire(self.nurse)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'Staff profile already exists for this user')

        self.assertEqual(self.admin.get('/api/staff/available-users').data['count'], 1)

    def test_doctor_cannot_hold_staff_record(self):
        doctor = make_user(User.ROLE_DOCTOR, email='doc@hospital.test')
        r = self.hire(doctor)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['message'], 'User role Doctor cannot hold a staff record')

    def test_department_and_stats(self):
        self.hire(self.nurse)
        self.hire(self.clerk, designation='Front Desk', department='Reception', shift='Morning')

        r = self.admin.get('/api/staff/department/emergency')
        self.assertEqual([s['user']['email'] for s in r.data['data']], ['nurse@hospital.test'])

        stats = self.admin.get('/api/staff/stats').data['data']
        self.assertEqual(stats['totalStaff'], 2)
        self.assertEqual(
            sorted((row['shift'], row['count']) for row in stats['byShift']),
            [('Morning', 1), ('Night', 1)],
        )

    def test_performance_rating_bounds(self):
        member = self.hire(self.nurse).data['data']['id']
        r = self.admin.put(f'/api/staff/{member}/performance', {'rating': '5.5'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = self.admin.put(f'/api/staff/{member}/performance', {'rating': '4.5', 'notes': 'steady'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['performance']['rating'], 4.5)
        self.assertTrue(r.data['data']['performance']['lastReviewDate'])

    def test_deactivate_hides_from_listing(self):
        member = self.hire(self.nurse).data['data']['id']
        r = self.admin.delete(f'/api/staff/{member}')
        self.assertEqual(r.data['message'], 'Staff member deactivated successfully')
        self.assertFalse(Staff.objects.get(pk=member).is_active)
        self.assertEqual(self.admin.get('/api/staff').data['count'], 0)

    def test_staff_routes_are_admin_only(self):
        r = client_for(self.nurse).get('/api/staff')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)


class ReportTests(APITestCase):
    def setUp(self) -> None:
        self.admin_user = make_user(User.ROLE_ADMIN, email='admin@hospital.test')
        self.admin = client_for(self.admin_user)
        doctor_user = make_user(User.ROLE_DOCTOR, email='doc@hospital.test', name='Dana Doc')
        self.doctor = Doctor.objects.create(
            user=doctor_user, specialization='General', qualification='MBBS', experience=3,
            license_number='LIC-4001', department='General', consultation_fee=Decimal('300.00'),
        )
        self.doc = client_for(doctor_user)
        self.desk = client_for(make_user(User.ROLE_RECEPTIONIST, email='desk@hospital.test'))
        self.patient = make_patient('pat@hospital.test')

    def book(self, start, **extra):
        end = f"{start[:3]}30"
        payload = {
            'patient': self.patient.pk, 'doctor': self.doctor.pk, 'appointmentDate': '2024-11-05',
            'timeSlot': {'startTime': start, 'endTime': end},
        }
        payload.update(extra)
        r = self.desk.post('/api/appointments', payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED, r.data)
        return r.data['data']

    def test_patient_visits_and_doctor_performance(self):
        self.book('09:00')
        second = self.book('10:00', priority='Emergency')
        self.desk.put(f"/api/appointments/{second['id']}/cancel", {'reason': 'unwell'}, format='json')

        r = self.doc.get('/api/reports/patient-visits', {'startDate': '2024-11-01', 'endDate': '2024-11-30'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['count'], 2)
        self.assertEqual(r.data['stats']['totalVisits'], 2)
        self.assertEqual(r.data['stats']['cancelled'], 1)

        rows = self.doc.get('/api/reports/doctor-performance').data['data']
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['totalAppointments'], 2)
        self.assertEqual(rows[0]['cancelledAppointments'], 1)
        self.assertEqual(rows[0]['emergencyCases'], 1)

    def test_ward_usage(self):
        ward = create_ward(self.admin_user, {
            'wardNumber': 'W2', 'wardName': 'Two', 'wardType': 'General', 'totalBeds': 4,
            'dailyRate': Decimal('200.00'),
        })
        allocate_bed(self.admin_user, ward.pk, patient_pk=self.patient.pk)
        r = self.doc.get('/api/reports/ward-usage')
        self.assertEqual(r.data['data'][0]['occupancyRate'], 25.0)
        self.assertEqual(r.data['stats']['occupiedBeds'], 1)
        self.assertEqual(r.data['stats']['totalPotentialRevenue'], 200.0)

    def test_revenue_is_admin_only(self):
        self.desk.post('/api/billing', {
            'patient': self.patient.pk,
            'items': [{'description': 'Visit', 'category': 'Consultation', 'quantity': 2, 'unitPrice': '150.00'}],
        }, format='json')
        self.assertEqual(self.doc.get('/api/reports/revenue').status_code, status.HTTP_403_FORBIDDEN)

        r = self.admin.get('/api/reports/revenue')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['stats']['totalBills'], 1)
        self.assertEqual(r.data['stats']['totalRevenue'], 300.0)
        self.assertEqual(r.data['stats']['byPaymentStatus']['unpaid'], 1)

    def test_overview(self):
        r = self.admin.get('/api/reports/dashboard')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data['data']
        self.assertEqual(data['patients']['total'], 1)
        self.assertEqual(data['doctors']['active'], 1)
        self.assertEqual(data['beds']['occupancyRate'], 0)
        self.assertEqual(self.doc.get('/api/reports/dashboard').status_code, status.HTTP_403_FORBIDDEN)


class HealthTests(APITestCase):
    def test_healthz_is_public(self):
        r = self.client.get('/healthz')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {'success': True, 'data': {'db': True}})
