"""Queue helpers for capture jobs."""

from redis import Redis
from rq import Queue
from .config import settings


def get_redis() -> Redis:
    return Redis.from_url(settings.redis_url)


def get_queue() -> Queue:
    """Get the Redis-backed capture queue."""
    return Queue(settings.queue_name, connection=get_redis())
