# app/tasks/reconcile.py
from typing import Any, Dict, List

from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


def enqueue_stock_reconciliation(order_id: str, shortfalls: List[Dict[str, Any]]):
    """Default reconciliation hook of the order pipeline."""
    record_stock_shortfall_task.delay(order_id, shortfalls)


@celery_app.task(name="app.tasks.reconcile.record_stock_shortfall_task")
def record_stock_shortfall_task(order_id: str, shortfalls: List[Dict[str, Any]]):
    """
    Order was created but some lines could not be taken from stock.
    The order stays as it is; the reconciliation job picks these records up.
    """
    for shortfall in shortfalls:
        logger.warning(
            f"[RECONCILE] order {order_id}: product {shortfall['productId']} "
            f"x{shortfall['requested']} not decremented ({shortfall['reason']})"
        )
    return {"order_id": order_id, "shortfalls": len(shortfalls)}
