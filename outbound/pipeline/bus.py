"""
Event bus — at-least-once delivery of named events with JSON payloads.

Production transport is an RQ queue on Redis: publishing enqueues
outbound.pipeline.dispatch.dispatch_event(name, payload) with a retry policy.
No deduplication and no ordering across event names; stages cope with both.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from outbound.config import (
    EVENT_QUEUE_NAME, EVENT_JOB_TIMEOUT, EVENT_RETRY_MAX, EVENT_RETRY_INTERVALS,
)
from outbound.pipeline.errors import UpstreamFailure

logger = logging.getLogger('pipeline.bus')

DISPATCH_FUNC = 'outbound.pipeline.dispatch.dispatch_event'


class EventBus(ABC):
    """Anything that can durably accept (name, payload) and hand back an ack."""

    @abstractmethod
    def publish(self, name: str, payload: Dict[str, Any]) -> str:
        """Publish an event. Returns an acknowledgement id once the bus has it."""
        ...


class RQEventBus(EventBus):
    """Redis/RQ-backed bus. The queue is built lazily so imports never touch Redis."""

    def __init__(self, queue=None):
        self._queue = queue

    def _get_queue(self):
        if self._queue is None:
            from rq import Queue
            from outbound.extensions import redis_client
            self._queue = Queue(EVENT_QUEUE_NAME, connection=redis_client)
        return self._queue

    def publish(self, name, payload):
        from rq import Retry
        try:
            job = self._get_queue().enqueue(
                DISPATCH_FUNC,
                name,
                payload,
                job_timeout=EVENT_JOB_TIMEOUT,
                retry=Retry(max=EVENT_RETRY_MAX, interval=EVENT_RETRY_INTERVALS or 0),
                description=f"{name} lead={payload.get('lead_id')}",
            )
        except Exception as e:
            logger.error("Failed to publish %s for lead %s", name, payload.get('lead_id'), exc_info=True)
            raise UpstreamFailure(f"Failed to publish {name}", details={'reason': str(e)})
        return job.id


_bus = None


def get_event_bus() -> EventBus:
    global _bus
    if _bus is None:
        _bus = RQEventBus()
    return _bus


def set_event_bus(bus: EventBus):
    """Swap the process-wide bus (worker bootstrap, tests)."""
    global _bus
    _bus = bus


def publish_event(event, bus: EventBus = None) -> str:
    """
    Validate a typed event at the publish boundary and hand it to the bus.

    Callers publish only after their own store write has committed.
    """
    payload = event.to_payload()
    ack = (bus or get_event_bus()).publish(event.name, payload)
    logger.info("Published %s for lead %s (ack=%s)", event.name, payload.get('lead_id'), ack,
                extra={'lead_id': payload.get('lead_id'), 'event': event.name})
    return ack
