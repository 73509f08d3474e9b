# checkin/queue.py
from redis import from_url
from rq import Queue

from checkin import config


def get_connection():
    url = "".join((config.REDIS_URL or "").split())
    if not url:
        raise RuntimeError("REDIS_URL is not set")
    # Note: use decode_responses=False for RQ/Redis binary safety
    return from_url(url, decode_responses=False)


def get_queue() -> Queue:
    return Queue(config.QUEUE_NAME, connection=get_connection(), default_timeout=120)


def queue_enabled() -> bool:
    return bool(config.REDIS_URL) and not config.DISABLE_QUEUE
