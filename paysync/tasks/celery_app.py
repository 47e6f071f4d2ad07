from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from paysync.core.config import settings


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
    "paysync",
    broker=_redis_url,
    backend=_redis_url,
    include=["paysync.tasks.jobs"],
)

celery.conf.timezone = "UTC"

celery.conf.beat_schedule = {
    "sync-pending-payments-every-5-minutes": {
        "task": "paysync.tasks.jobs.sync_pending_payments",
        "schedule": 300.0,
        "kwargs": {"limit": settings.PENDING_SYNC_BATCH_SIZE},
    },
}
