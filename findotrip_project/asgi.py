"""ASGI config for the FindoTrip marketplace."""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'findotrip_project.settings')

application = get_asgi_application()
