"""
ASGI config for the workwear project.

HTTP only; served by uvicorn or gunicorn with an ASGI worker.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "workwear.settings")

application = get_asgi_application()
