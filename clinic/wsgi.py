"""
WSGI config for the clinic project.

It exposes the WSGI callable as a module-level variable named ``application``.
Realtime features need the ASGI entrypoint in ``clinic.asgi``; this one
serves plain HTTP only.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clinic.settings')

application = get_wsgi_application()
