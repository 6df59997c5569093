from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from guidetrip.core.config import settings
from guidetrip.core.log_config import setup_logging


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "guidetrip",
    broker=_redis_url,
    backend=_redis_url,
    include=["guidetrip.tasks.jobs"],
)

celery.conf.timezone = settings.CELERY_TIMEZONE


# Use our log format in the worker instead of Celery's own root handler
@celery_setup_logging.connect
def on_setup_logging(**kwargs):
    setup_logging()


celery.conf.beat_schedule = {
    "auto-cancel-unpaid-orders-every-5-minutes": {
        "task": "guidetrip.tasks.jobs.auto_cancel_orders",
        "schedule": settings.AUTO_CANCEL_INTERVAL_SECONDS,
    },
    "auto-settle-orders-hourly": {
        "task": "guidetrip.tasks.jobs.auto_settle_orders",
        "schedule": settings.AUTO_SETTLE_INTERVAL_SECONDS,
        "kwargs": {"batch_size": settings.SETTLE_BATCH_SIZE, "max_rows": settings.SETTLE_MAX_ROWS},
    },
}
