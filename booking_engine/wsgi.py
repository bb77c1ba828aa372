"""
WSGI config for booking_engine project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.core.wsgi import get_wsgi_application


os.environ.setdefault("DJANGO_SETTINGS_MODULE", "booking_engine.settings.production")

application = get_wsgi_application()
