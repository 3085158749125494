# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    EXPIRE_CARTS_INTERVAL_SECONDS,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks must be imported explicitly for the worker to register them
celery_app.conf.imports = (
    "storefront.tasks.expire",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-anonymous-carts": {
        "task": "storefront.tasks.expire.expire_carts_task",
        "schedule": EXPIRE_CARTS_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
