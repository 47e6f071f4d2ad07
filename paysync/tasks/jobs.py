from paysync.tasks.celery_app import celery
from paysync.tasks import worker_jobs

@celery.task(name="paysync.tasks.jobs.sync_pending_payments")
def sync_pending_payments(limit: int = 50):
    return worker_jobs.sync_pending_payments(limit=limit)
