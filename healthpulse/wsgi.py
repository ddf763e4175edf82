"""
WSGI config for the HealthPulse project.

It exposes the WSGI callable as a module-level variable named ``application``.
WebSocket traffic needs the ASGI entrypoint in ``healthpulse.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

# Set the default settings module for the 'django' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'healthpulse.settings')

# Obtain the WSGI application for use by the server
application = get_wsgi_application()
