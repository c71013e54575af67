# cartstore/celery_worker.py
from celery import Celery

from cartstore.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    EXPIRE_SWEEP_INTERVAL_SECONDS,
)

celery_app = Celery(
    "cart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski importowane jawnie, zeby worker je zarejestrowal
celery_app.conf.imports = (
    "cartstore.tasks.expire",
)

celery_app.conf.beat_schedule = {
    "expire-carts": {
        "task": "cartstore.tasks.expire.expire_carts_task",
        "schedule": EXPIRE_SWEEP_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
