"""
Pipeline event contract.

The bus has no schema registry, so the event name is the versioning unit: each
event kind is a dataclass with a fixed name and payload shape, checked when it
is published (to_payload) and again when a stage consumes it (from_payload).
Adding a stage means adding a variant here, never reshaping an existing one.

  lead.ready-for-deployment → ResearchStage
  lead.research-complete    → SequencingStage
  lead.sequence-ready       → DeploymentStage
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from outbound.config import TOP_TRIGGERS_LIMIT

QUALIFICATION_DECISIONS = ('YES', 'NO', 'UNSURE')


class InvalidEvent(ValueError):
    """Payload does not match the shape declared for its event name."""


def _require(payload: Dict[str, Any], key: str, kind=str):
    value = payload.get(key)
    if not isinstance(value, kind) or (kind is str and not value):
        raise InvalidEvent(f"'{key}' must be a non-empty {kind.__name__}")
    return value


@dataclass(frozen=True)
class Qualification:
    decision: str
    reasoning: str = ''
    confidence: int = 0

    def __post_init__(self):
        if self.decision not in QUALIFICATION_DECISIONS:
            raise InvalidEvent(f"Unknown qualification decision: {self.decision!r}")
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise InvalidEvent("qualification.confidence must be a number")
        if not 0 <= self.confidence <= 100:
            raise InvalidEvent("qualification.confidence must be within 0-100")

    def to_payload(self) -> Dict[str, Any]:
        return {'decision': self.decision, 'reasoning': self.reasoning, 'confidence': self.confidence}

    @classmethod
    def from_payload(cls, data) -> 'Qualification':
        if not isinstance(data, dict):
            raise InvalidEvent("'qualification' must be an object")
        return cls(
            decision=data.get('decision'),
            reasoning=data.get('reasoning') or '',
            confidence=data.get('confidence', 0),
        )


@dataclass(frozen=True)
class ReadyForDeployment:
    """A qualified lead is ready for research."""
    name = 'lead.ready-for-deployment'

    lead_id: str
    tenant_id: str
    qualification: Qualification

    def to_payload(self) -> Dict[str, Any]:
        return {
            'lead_id': self.lead_id,
            'tenant_id': self.tenant_id,
            'qualification': self.qualification.to_payload(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'ReadyForDeployment':
        return cls(
            lead_id=_require(payload, 'lead_id'),
            tenant_id=_require(payload, 'tenant_id'),
            qualification=Qualification.from_payload(payload.get('qualification')),
        )


@dataclass(frozen=True)
class ResearchComplete:
    """Research signals for a lead are stored; sequencing can start."""
    name = 'lead.research-complete'

    lead_id: str
    tenant_id: str
    qualification: Qualification
    persona_match: Optional[Dict[str, Any]] = None
    top_triggers: List[Any] = field(default_factory=list)
    messaging_angles: List[Any] = field(default_factory=list)

    def __post_init__(self):
        if len(self.top_triggers) > TOP_TRIGGERS_LIMIT:
            raise InvalidEvent(
                f"top_triggers carries {len(self.top_triggers)} items, limit is {TOP_TRIGGERS_LIMIT}"
            )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'lead_id': self.lead_id,
            'tenant_id': self.tenant_id,
            'persona_match': self.persona_match,
            'top_triggers': list(self.top_triggers),
            'messaging_angles': list(self.messaging_angles),
            'qualification': self.qualification.to_payload(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'ResearchComplete':
        triggers = payload.get('top_triggers') or []
        angles = payload.get('messaging_angles') or []
        if not isinstance(triggers, list) or not isinstance(angles, list):
            raise InvalidEvent("'top_triggers' and 'messaging_angles' must be lists")
        return cls(
            lead_id=_require(payload, 'lead_id'),
            tenant_id=_require(payload, 'tenant_id'),
            qualification=Qualification.from_payload(payload.get('qualification')),
            persona_match=payload.get('persona_match'),
            top_triggers=triggers,
            messaging_angles=angles,
        )


@dataclass(frozen=True)
class SequenceReady:
    """A sequence reached 'ready' and should be handed to the send system."""
    name = 'lead.sequence-ready'

    lead_id: str
    tenant_id: str
    sequence_id: str

    def to_payload(self) -> Dict[str, Any]:
        return {'lead_id': self.lead_id, 'tenant_id': self.tenant_id, 'sequence_id': self.sequence_id}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'SequenceReady':
        return cls(
            lead_id=_require(payload, 'lead_id'),
            tenant_id=_require(payload, 'tenant_id'),
            sequence_id=_require(payload, 'sequence_id'),
        )


EVENT_TYPES = {
    ReadyForDeployment.name: ReadyForDeployment,
    ResearchComplete.name: ResearchComplete,
    SequenceReady.name: SequenceReady,
}


def parse_event(name: str, payload: Dict[str, Any]):
    """Build the typed event for a (name, payload) pair pulled off the bus."""
    event_cls = EVENT_TYPES.get(name)
    if event_cls is None:
        raise InvalidEvent(f"Unknown event name: {name!r}")
    if not isinstance(payload, dict):
        raise InvalidEvent(f"Payload for {name} must be an object")
    return event_cls.from_payload(payload)


def research_complete_from_signals(lead_id: str, tenant_id: str, signals: Dict[str, Any],
                                   qualification: Qualification) -> ResearchComplete:
    """
    Build lead.research-complete from a stored research bundle.

    The emitter truncates triggers so every consumer sees at most
    TOP_TRIGGERS_LIMIT of them, in their original order.
    """
    signals = signals or {}
    return ResearchComplete(
        lead_id=lead_id,
        tenant_id=tenant_id,
        qualification=qualification,
        persona_match=signals.get('persona_match'),
        top_triggers=list(signals.get('triggers') or [])[:TOP_TRIGGERS_LIMIT],
        messaging_angles=list(signals.get('messaging_angles') or []),
    )
