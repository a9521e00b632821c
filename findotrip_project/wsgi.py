"""WSGI config for the FindoTrip marketplace."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'findotrip_project.settings')

application = get_wsgi_application()
