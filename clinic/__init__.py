"""Clinic application for the hospital backend.

This package holds the models, services, serializers, views and route
registrations for patients, doctors, staff, appointments, wards,
medicines, prescriptions, billing, reports and role dashboards.
"""
