from guidetrip.tasks.celery_app import celery
from guidetrip.tasks import worker_jobs

@celery.task(name="guidetrip.tasks.jobs.auto_cancel_orders")
def auto_cancel_orders():
    return worker_jobs.auto_cancel_orders()

@celery.task(name="guidetrip.tasks.jobs.auto_settle_orders")
def auto_settle_orders(batch_size: int = 100, max_rows: int = 10000):
    return worker_jobs.auto_settle_orders(batch_size=batch_size, max_rows=max_rows)
