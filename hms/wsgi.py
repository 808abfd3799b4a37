"""
WSGI config for the hospital backend project.

Gunicorn and other WSGI servers load ``hms.wsgi:application``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hms.settings')

application = get_wsgi_application()
