"""
Celery Tasks
Background tasks for the bill ledger.
"""

import logging
import time
from datetime import datetime

from app.celery_worker import celery_app
from app.services.excel_manager import ExcelManager, LedgerExportError

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_bill_to_excel(self, bill_data: dict) -> dict:
    """
    Append a bill to the Excel ledger.
    This task runs asynchronously via Celery worker.

    Args:
        bill_data: Bill as serialized on the wire

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    bill_id = bill_data.get('id', 'unknown')

    logger.info(f"Task {task_id}: Processing bill {bill_id}")
    start_time = time.time()

    try:
        result = ExcelManager.export_bill(bill_data)

        elapsed = round(time.time() - start_time, 3)
        result['task_id'] = task_id
        result['processing_time_seconds'] = elapsed

        if not result['success']:
            # Raising hands the bill back to autoretry with backoff
            raise LedgerExportError(f"Bill {bill_id} not exported: {result['message']}")

        logger.info(f"Task {task_id}: Bill {bill_id} completed in {elapsed}s")

        return result

    except Exception as e:
        elapsed = round(time.time() - start_time, 3)
        logger.error(f"Task {task_id}: Bill {bill_id} error after {elapsed}s - {e}")

        # Celery will auto-retry based on configuration
        raise


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_ledger() -> dict:
    """
    Clear the Excel ledger (for testing/reset purposes).
    """
    success = ExcelManager.clear_all()
    return {
        'success': success,
        'message': 'Excel ledger cleared' if success else 'Failed to clear Excel ledger',
        'timestamp': datetime.now().isoformat()
    }
