"""RQ worker for capture jobs."""

from rq import Worker, Queue

from server.config import settings
from server.queue import get_redis


def main() -> None:
    """Start worker process."""
    redis = get_redis()
    worker = Worker([Queue(settings.queue_name, connection=redis)], connection=redis)
    worker.work()


if __name__ == '__main__':
    main()
