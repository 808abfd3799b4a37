"""
URL mappings for the hospital backend API.

Every resource lives under ``/api/<resource>``.  Trailing slashes are
omitted.  Fixed sub-paths (``stats``, ``available-users``, alerts) are
declared before the ``<int:pk>`` routes of the same resource.
"""
from django.urls import path

from .auth_views import (
    forgot_password_view,
    jwt_logout_view,
    jwt_refresh_view,
    list_users_view,
    login_view,
    me_view,
    register_view,
    reset_password_view,
    update_details_view,
    update_password_view,
    user_status_view,
)
from .views import (
    appointments,
    billing,
    dashboard,
    doctors,
    health,
    medicines,
    patients,
    prescriptions,
    reports,
    staff,
    wards,
)

auth_urls = [
    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/forgotpassword', forgot_password_view, name='forgot_password_view'),
    path('api/auth/resetpassword/<str:resettoken>', reset_password_view, name='reset_password_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/updatepassword', update_password_view, name='update_password_view'),
    path('api/auth/updatedetails', update_details_view, name='update_details_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    path('api/auth/users', list_users_view, name='list_users_view'),
    path('api/auth/users/<int:pk>/status', user_status_view, name='user_status_view'),
]

doctor_urls = [
    path('api/doctors', doctors.doctors, name='doctors'),
    path('api/doctors/available-users', doctors.available_users, name='doctor_available_users'),
    path('api/doctors/<int:pk>', doctors.doctor_detail, name='doctor_detail'),
    path('api/doctors/<int:pk>/availability', doctors.doctor_availability, name='doctor_availability'),
    path('api/doctors/<int:pk>/oncall', doctors.doctor_on_call, name='doctor_on_call'),
    path('api/doctors/<int:pk>/slots', doctors.doctor_slots, name='doctor_slots'),
    path('api/doctors/<int:pk>/schedule', doctors.doctor_schedule, name='doctor_schedule'),
    path('api/doctors/<int:pk>/appointments', doctors.doctor_appointments, name='doctor_appointments'),
]

patient_urls = [
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/available-users', patients.available_users, name='patient_available_users'),
    path('api/patients/<int:pk>', patients.patient_detail, name='patient_detail'),
    path('api/patients/<int:pk>/medical-records', patients.medical_records, name='patient_medical_records'),
    path('api/patients/<int:pk>/appointments', patients.patient_appointments, name='patient_appointments'),
    path('api/patients/<int:pk>/stats', patients.patient_stats, name='patient_stats'),
    path('api/patients/<int:pk>/medical-history', patients.medical_history, name='patient_medical_history'),
    path('api/patients/<int:pk>/medical-history/<str:entry_id>', patients.medical_history_detail,
         name='patient_medical_history_detail'),
    path('api/patients/<int:pk>/lab-report', patients.lab_report, name='patient_lab_report'),
]

appointment_urls = [
    path('api/appointments', appointments.appointments, name='appointments'),
    path('api/appointments/<int:pk>', appointments.appointment_detail, name='appointment_detail'),
    path('api/appointments/<int:pk>/cancel', appointments.cancel, name='appointment_cancel'),
    path('api/appointments/<int:pk>/reschedule', appointments.reschedule, name='appointment_reschedule'),
]

ward_urls = [
    path('api/wards', wards.wards, name='wards'),
    path('api/wards/stats', wards.ward_stats, name='ward_stats'),
    path('api/wards/<int:pk>', wards.ward_detail, name='ward_detail'),
    path('api/wards/<int:pk>/allocate', wards.allocate, name='ward_allocate'),
    path('api/wards/<int:pk>/release', wards.release, name='ward_release'),
]

medicine_urls = [
    path('api/medicines', medicines.medicines, name='medicines'),
    path('api/medicines/stats', medicines.medicine_stats, name='medicine_stats'),
    path('api/medicines/categories', medicines.medicine_categories, name='medicine_categories'),
    path('api/medicines/alerts/low-stock', medicines.low_stock, name='medicine_low_stock'),
    path('api/medicines/alerts/expiring', medicines.expiring, name='medicine_expiring'),
    path('api/medicines/alerts/expired', medicines.expired, name='medicine_expired'),
    path('api/medicines/<int:pk>', medicines.medicine_detail, name='medicine_detail'),
    path('api/medicines/<int:pk>/stock', medicines.stock, name='medicine_stock'),
]

prescription_urls = [
    path('api/prescriptions', prescriptions.prescriptions, name='prescriptions'),
    path('api/prescriptions/stats', prescriptions.prescription_stats, name='prescription_stats'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),
    path('api/prescriptions/<int:pk>/status', prescriptions.prescription_status, name='prescription_status'),
    path('api/prescriptions/<int:pk>/refill', prescriptions.refill, name='prescription_refill'),
]

billing_urls = [
    path('api/billing', billing.bills, name='bills'),
    path('api/billing/stats', billing.billing_stats, name='billing_stats'),
    path('api/billing/<int:pk>', billing.bill_detail, name='bill_detail'),
    path('api/billing/<int:pk>/payment', billing.payment, name='bill_payment'),
    path('api/billing/<int:pk>/insurance', billing.insurance, name='bill_insurance'),
]

staff_urls = [
    path('api/staff', staff.staff, name='staff'),
    path('api/staff/available-users', staff.available_users, name='staff_available_users'),
    path('api/staff/stats', staff.staff_stats, name='staff_stats'),
    path('api/staff/department/<str:department>', staff.by_department, name='staff_by_department'),
    path('api/staff/<int:pk>', staff.staff_detail, name='staff_detail'),
    path('api/staff/<int:pk>/performance', staff.performance, name='staff_performance'),
]

report_urls = [
    path('api/reports/patient-visits', reports.patient_visits, name='report_patient_visits'),
    path('api/reports/doctor-performance', reports.doctor_performance, name='report_doctor_performance'),
    path('api/reports/ward-usage', reports.ward_usage, name='report_ward_usage'),
    path('api/reports/revenue', reports.revenue, name='report_revenue'),
    path('api/reports/dashboard', reports.overview, name='report_dashboard'),
]

dashboard_urls = [
    path('api/dashboards/admin', dashboard.admin_dashboard, name='admin_dashboard'),
    path('api/dashboards/doctor', dashboard.doctor_dashboard, name='doctor_dashboard'),
    path('api/dashboards/patient', dashboard.patient_dashboard, name='patient_dashboard'),
    path('api/dashboards/nurse', dashboard.nurse_dashboard, name='nurse_dashboard'),
    path('api/dashboards/receptionist', dashboard.receptionist_dashboard, name='receptionist_dashboard'),
    path('api/dashboards/pharmacist', dashboard.pharmacist_dashboard, name='pharmacist_dashboard'),
    path('api/dashboards/permissions', dashboard.my_permissions, name='my_permissions'),
]

urlpatterns = [
    path('healthz', health.healthz, name='healthz'),
    *auth_urls,
    *doctor_urls,
    *patient_urls,
    *appointment_urls,
    *ward_urls,
    *medicine_urls,
    *prescription_urls,
    *billing_urls,
    *staff_urls,
    *report_urls,
    *dashboard_urls,
]
