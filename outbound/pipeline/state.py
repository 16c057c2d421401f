"""
Lead / sequence state machine.

EmailSequence.status is a closed, ordered lifecycle:

    drafting → ready → deployed → completed

Only single forward steps are legal. The lead's pipeline stage is never stored;
derive_lead_stage() recomputes it from the child records every time.
"""
from outbound.pipeline.errors import IllegalTransition

DRAFTING = 'drafting'
READY = 'ready'
DEPLOYED = 'deployed'
COMPLETED = 'completed'

SEQUENCE_STATUSES = (DRAFTING, READY, DEPLOYED, COMPLETED)

TRANSITIONS = {
    DRAFTING: READY,       # sequencing filled both threads, or operator marked ready
    READY: DEPLOYED,       # deployment stage handed it to the send system
    DEPLOYED: COMPLETED,   # external bookkeeping once all sends are exhausted
}

# Thread content is frozen from deployment onwards.
LOCKED_STATUSES = frozenset({DEPLOYED, COMPLETED})
EDITABLE_STATUSES = tuple(s for s in SEQUENCE_STATUSES if s not in LOCKED_STATUSES)

# Derived lead stages
PENDING_RESEARCH = 'pending-research'
PENDING_SEQUENCING = 'pending-sequencing'
SEQUENCING = 'sequencing'

_STAGE_BY_STATUS = {
    DRAFTING: SEQUENCING,
    READY: SEQUENCING,
    DEPLOYED: 'deployed',
    COMPLETED: 'completed',
}


def is_editable(status: str) -> bool:
    """Threads may change only before deployment, whoever is editing."""
    return status not in LOCKED_STATUSES


def can_transition(current: str, target: str) -> bool:
    return TRANSITIONS.get(current) == target


def check_transition(current: str, target: str) -> None:
    """Raise IllegalTransition unless current → target is one forward step."""
    if not can_transition(current, target):
        raise IllegalTransition(current, target)


def status_rank(status: str) -> int:
    """Position in the lifecycle; unknown statuses rank before drafting."""
    try:
        return SEQUENCE_STATUSES.index(status)
    except ValueError:
        return -1


def derive_lead_stage(research_record, sequence) -> str:
    """
    Pipeline stage of a lead, as a pure function of its child records.

    research_record / sequence are the fetched rows (or None when absent).
    """
    if sequence is not None:
        return _STAGE_BY_STATUS.get(sequence.status, SEQUENCING)
    if research_record is None:
        return PENDING_RESEARCH
    return PENDING_SEQUENCING
