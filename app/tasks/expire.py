# app/tasks/expire.py
from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.services.cart_service import CartStore
from app.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="app.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        purged = CartStore(db).purge_expired()
        logger.info(f"Expire carts task finished, {purged} carts removed")
        return purged
    finally:
        db.close()
