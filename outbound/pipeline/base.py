"""
Pipeline stage contract.

Every stage consumes exactly one event kind, re-validates its own prerequisite
records at execution time (event order is not guaranteed), writes with
upsert/conditional semantics so duplicate deliveries are harmless, and only
then publishes the next event.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from outbound.pipeline.bus import EventBus, publish_event

COMPLETED = 'completed'
SKIPPED = 'skipped'
FAILED = 'failed'


@dataclass
class StageResult:
    """Uniform outcome of one stage execution."""
    status: str
    lead_id: Optional[str]
    detail: str = ''
    emitted: Optional[str] = None          # name of the event published, if any
    meta: Dict[str, Any] = field(default_factory=dict)


class Stage(ABC):
    name: str = ''
    consumes = None          # event dataclass this stage is triggered by
    description: str = ''

    def __init__(self, bus: EventBus = None):
        self.bus = bus

    def publish(self, event) -> str:
        return publish_event(event, self.bus)

    @abstractmethod
    def run(self, event) -> StageResult:
        """Execute the stage for one delivered event."""
        ...
