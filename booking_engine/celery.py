import os

from celery import Celery  # type: ignore


os.environ.setdefault("DJANGO_SETTINGS_MODULE", "booking_engine.settings.local")

app = Celery("booking_engine_tasks")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
