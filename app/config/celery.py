"""
Celery application.

Redis is both broker and result backend. Tasks are discovered from each
installed app's tasks.py; the messaging app uses it to hand new-message
events to the notifications service outside the request transaction.

Start a worker with:
    celery -A config worker -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("messaging_service")

# All Celery settings are CELERY_-prefixed in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
