# cartstore/tasks/expire.py
from cartstore.celery_worker import celery_app
from cartstore.services.cart_service import CartService
from cartstore.utils.settings import EXPIRE_SWEEP_BATCH
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)
cart_service = CartService()


@celery_app.task(name="cartstore.tasks.expire.expire_carts_task")
def expire_carts_task(limit: int = EXPIRE_SWEEP_BATCH):
    logger.info("Expire carts task started")

    archived = cart_service.clear_expired(limit=limit)

    logger.info(f"Moved {archived} expired carts to history")
    return archived
