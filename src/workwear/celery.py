"""Celery configuration for the workwear project."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "workwear.settings")

app = Celery("workwear")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
