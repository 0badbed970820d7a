"""
Celery Tasks
Background export of finished orders to the production log.
"""

import logging
import time
from datetime import datetime

from aristaeus.celery_worker import celery_app
from aristaeus.services.production_log import ProductionLogManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_order_to_production_log(self, row: dict) -> dict:
    """
    Write a finished order to the production log spreadsheet.

    Args:
        row: Snapshot built by production_log.build_log_row()

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_id = row.get("order_id", "unknown")

    logger.info(f"Task {task_id}: exporting order #{order_id}")
    start_time = time.time()

    result = ProductionLogManager.from_settings().export_order(row)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"Task {task_id}: order #{order_id} exported in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: order #{order_id} not exported - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        "status": "healthy",
        "worker": "celery",
        "timestamp": datetime.now().isoformat()
    }


@celery_app.task
def clear_production_log() -> dict:
    """
    Clear the production log (for testing/reset purposes).
    """
    success = ProductionLogManager.from_settings().clear_all()
    return {
        "success": success,
        "message": "Production log cleared" if success else "Failed to clear production log",
        "timestamp": datetime.now().isoformat()
    }
