# app/celery_worker.py
from celery import Celery

from app.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, CELERY_TASK_ALWAYS_EAGER

celery_app = Celery(
    "pharmacy",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# IMPORTANT: import tasks explicitly so Celery registers them
celery_app.conf.imports = (
    "app.services.notification_service",
)

# eager mode runs tasks in-process (local development and tests)
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_ignore_result = True

celery_app.conf.timezone = "UTC"
