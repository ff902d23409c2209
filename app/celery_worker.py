# app/celery_worker.py
from celery import Celery

from app.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    CART_EXPIRY_INTERVAL_SECONDS,
)

celery_app = Celery(
    "fulfillment",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# import tasks explicitly so the worker registers them
celery_app.conf.imports = (
    "app.tasks.expire",
    "app.tasks.reconcile",
    "app.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-carts": {
        "task": "app.tasks.expire.expire_carts_task",
        "schedule": CART_EXPIRY_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
