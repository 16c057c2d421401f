"""
RQ worker entry point — consumes pipeline events.

    python worker.py

Each job is outbound.pipeline.dispatch.dispatch_event(name, payload).
"""
import logging

from rq import Worker, Queue

from outbound.config import EVENT_QUEUE_NAME
from outbound.extensions import redis_client
from outbound.logging_config import configure_logging

logger = logging.getLogger('worker')


def main():
    configure_logging()

    # Register all mapped classes before the first job touches the session.
    import outbound.models.tenant  # noqa: F401
    import outbound.models.lead  # noqa: F401
    import outbound.models.research_record  # noqa: F401
    import outbound.models.email_sequence  # noqa: F401
    import outbound.models.lead_memory  # noqa: F401

    queue = Queue(EVENT_QUEUE_NAME, connection=redis_client)
    logger.info("Worker listening on queue '%s'", EVENT_QUEUE_NAME)
    Worker([queue], connection=redis_client).work(with_scheduler=True)


if __name__ == '__main__':
    main()
