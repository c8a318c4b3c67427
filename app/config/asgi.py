"""
ASGI entry point (served by Uvicorn).

HTTP only: the messaging core has no real-time transport.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
