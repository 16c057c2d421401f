"""
Pipeline orchestrator — operator-facing entry points into the pipeline.

Manual re-runs, sequence content edits, mark-ready, deploy requests and the
derived stage view. Nothing here runs a stage inline: re-runs and deploys
publish events and return immediately.
"""
import logging

from outbound.config import PIPELINE_STEPS, MANUAL_RERUN_QUALIFICATION
from outbound.pipeline.bus import publish_event
from outbound.pipeline.content import normalize_thread
from outbound.pipeline.errors import NotFound, PreconditionFailed
from outbound.pipeline.events import (
    Qualification, ReadyForDeployment, SequenceReady, research_complete_from_signals,
)
from outbound.pipeline.state import (
    READY, EDITABLE_STATUSES, derive_lead_stage, is_editable,
)
from outbound.services import audit, store

logger = logging.getLogger('pipeline.orchestrator')


class _Unset:
    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


# Distinguishes "field omitted" from an explicit None (which clears the thread).
UNSET = _Unset()


def _manual_qualification():
    return Qualification(**MANUAL_RERUN_QUALIFICATION)


# ── Manual re-run ────────────────────────────────────────────────────────────

def rerun_pipeline_step(lead_id, step, bus=None):
    """
    Re-trigger one pipeline step for a lead.

    Returns {status: 'triggered', step} as soon as the event is published.
    Repeated calls publish repeated events; the stages upsert by lead_id so
    they converge on one record per lead.
    """
    if step not in PIPELINE_STEPS:
        raise PreconditionFailed(
            f"Invalid step: {step!r}", details={'allowed': list(PIPELINE_STEPS)},
        )

    lead = store.get_lead(lead_id)
    if lead is None:
        raise NotFound(f"Lead not found: {lead_id}")

    qualification = _manual_qualification()

    if step == 'research':
        event = ReadyForDeployment(lead_id=lead.id, tenant_id=lead.tenant_id, qualification=qualification)
    else:
        record = store.get_research_record(lead.id)
        if record is None:
            raise PreconditionFailed(f"Research not found for lead {lead.id} — run research first")
        event = research_complete_from_signals(
            lead.id, lead.tenant_id, record.extracted_signals, qualification,
        )

    ack = publish_event(event, bus)

    audit.record(
        lead.id,
        'pipeline_rerun',
        description=f"Manual re-run of {step}",
        context={'step': step, 'event': event.name, 'ack': ack},
        source='orchestrator',
        tenant_id=lead.tenant_id,
    )
    logger.info("Re-run of %s triggered for lead %s", step, lead.id,
                extra={'lead_id': lead.id, 'event': event.name})
    return {'status': 'triggered', 'step': step}


# ── Sequence content ─────────────────────────────────────────────────────────

def update_sequence_content(sequence_id, thread1=UNSET, thread2=UNSET):
    """
    Partially update a sequence's threads while it is still editable.

    An omitted thread is kept, an explicit None clears it. Once the sequence
    is deployed or completed every edit is refused and nothing is written.
    """
    if thread1 is UNSET and thread2 is UNSET:
        raise PreconditionFailed("No content provided")

    fields = {}
    if thread1 is not UNSET:
        fields['thread_1'] = normalize_thread(thread1, 'thread1')
    if thread2 is not UNSET:
        fields['thread_2'] = normalize_thread(thread2, 'thread2')

    sequence = store.get_sequence(sequence_id)
    if sequence is None:
        raise NotFound(f"Sequence not found: {sequence_id}")
    if not is_editable(sequence.status):
        raise PreconditionFailed(
            f"Sequence is {sequence.status} — content can no longer be edited",
            details={'status': sequence.status},
        )

    if not store.update_sequence_if_status(sequence_id, EDITABLE_STATUSES, fields):
        # Lost a race with deployment (or the row vanished) between read and write.
        current = store.get_sequence(sequence_id)
        if current is None:
            raise NotFound(f"Sequence not found: {sequence_id}")
        raise PreconditionFailed(
            f"Sequence is {current.status} — content can no longer be edited",
            details={'status': current.status},
        )

    edited = [name for name, value in (('thread1', thread1), ('thread2', thread2)) if value is not UNSET]
    audit.record(
        sequence.lead_id,
        'sequence_edited',
        description=f"Sequence content edited ({', '.join(edited)})",
        context={'sequence_id': sequence_id, 'edited_threads': edited},
        source='human_edit',
        tenant_id=sequence.tenant_id,
    )
    return {'success': True}


def mark_sequence_ready(sequence_id):
    """Operator sign-off: drafting → ready."""
    sequence = store.get_sequence(sequence_id)
    if sequence is None:
        raise NotFound(f"Sequence not found: {sequence_id}")

    if not store.transition_sequence(sequence_id, sequence.status, READY):
        raise PreconditionFailed(f"Sequence {sequence_id} changed status concurrently — reload and retry")

    audit.record(
        sequence.lead_id,
        'sequence_status_changed',
        description=f"Sequence marked {READY}",
        context={'sequence_id': sequence_id, 'from': sequence.status, 'to': READY},
        source='human_edit',
        tenant_id=sequence.tenant_id,
    )
    return {'success': True, 'status': READY}


# ── Deployment ───────────────────────────────────────────────────────────────

def request_deployment(lead_id, bus=None):
    """Publish lead.sequence-ready for a lead whose sequence is ready."""
    lead = store.get_lead(lead_id)
    if lead is None:
        raise NotFound(f"Lead not found: {lead_id}")

    sequence = store.get_sequence_for_lead(lead.id)
    if sequence is None:
        raise PreconditionFailed(f"No sequence for lead {lead.id} — run sequencing first")
    if sequence.status != READY:
        raise PreconditionFailed(
            f"Sequence is {sequence.status} — only ready sequences can be deployed",
            details={'status': sequence.status},
        )

    event = SequenceReady(lead_id=lead.id, tenant_id=lead.tenant_id, sequence_id=sequence.id)
    ack = publish_event(event, bus)

    audit.record(
        lead.id,
        'deployment_requested',
        description='Deployment requested',
        context={'sequence_id': sequence.id, 'ack': ack},
        source='orchestrator',
        tenant_id=lead.tenant_id,
    )
    return {'status': 'triggered', 'sequence_id': sequence.id}


# ── Read views ───────────────────────────────────────────────────────────────

def get_lead_pipeline(lead_id):
    lead = store.get_lead(lead_id)
    if lead is None:
        raise NotFound(f"Lead not found: {lead_id}")

    record = store.get_research_record(lead.id)
    sequence = store.get_sequence_for_lead(lead.id)
    return {
        'lead_id': lead.id,
        'stage': derive_lead_stage(record, sequence),
        'sequence_status': sequence.status if sequence else None,
        'has_research': record is not None,
    }


def list_lead_memories(lead_id):
    if store.get_lead(lead_id) is None:
        raise NotFound(f"Lead not found: {lead_id}")
    return [memory.to_dict() for memory in store.list_memories(lead_id)]
