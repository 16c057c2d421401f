"""
Sequencing stage — consumes lead.research-complete.

Writes (or rewrites) the lead's two email threads. A sequence that is already
deployed or completed is left alone: redelivered or re-run events cannot reopen
content that has gone out.
"""
import logging

from outbound.config import AUTO_DEPLOY
from outbound.pipeline.base import Stage, StageResult, COMPLETED, SKIPPED
from outbound.pipeline.content import normalize_thread
from outbound.pipeline.errors import NotFound, PreconditionFailed, UpstreamFailure
from outbound.pipeline.events import ResearchComplete, SequenceReady
from outbound.pipeline.state import DRAFTING, READY, is_editable
from outbound.services import audit, store
from outbound.services.generation import write_sequence

logger = logging.getLogger('pipeline.sequencing')


class SequencingStage(Stage):
    name = 'sequencing'
    consumes = ResearchComplete
    description = 'Two-thread email sequence writing via OpenAI'

    def run(self, event: ResearchComplete) -> StageResult:
        lead = store.get_lead(event.lead_id)
        if lead is None:
            raise NotFound(f"Lead not found: {event.lead_id}")

        # The event carries the signals, but the record must still exist now:
        # sequencing never runs on research that is not stored.
        if store.get_research_record(lead.id) is None:
            raise PreconditionFailed(f"Research not found for lead {lead.id} — run research first")

        existing = store.get_sequence_for_lead(lead.id)
        if existing is not None and not is_editable(existing.status):
            logger.info("Sequence %s for lead %s is %s — not regenerating", existing.id, lead.id, existing.status)
            return StageResult(status=SKIPPED, lead_id=lead.id,
                               detail=f"sequence already {existing.status}",
                               meta={'sequence_id': existing.id})

        generated = write_sequence(lead, event)
        try:
            thread_1 = normalize_thread(generated.get('thread_1'), 'thread_1')
            thread_2 = normalize_thread(generated.get('thread_2'), 'thread_2')
        except PreconditionFailed as e:
            raise UpstreamFailure(f"Sequence writer returned a malformed thread: {e.message}")

        status = READY if thread_1 and thread_2 else DRAFTING
        sequence = store.upsert_sequence(lead.id, lead.tenant_id, {
            'thread_1': thread_1,
            'thread_2': thread_2,
            'status': status,
        })

        if not is_editable(sequence.status):
            # Deployed between our read and our write; the store kept it intact.
            return StageResult(status=SKIPPED, lead_id=lead.id,
                               detail=f"sequence already {sequence.status}",
                               meta={'sequence_id': sequence.id})

        audit.record(
            lead.id,
            'sequence_generated',
            description=f"Sequence written ({sequence.status})",
            context={
                'sequence_id': sequence.id,
                'status': sequence.status,
                'thread_1_subject': thread_1['subject'] if thread_1 else None,
                'thread_2_subject': thread_2['subject'] if thread_2 else None,
                'triggers_used': len(event.top_triggers),
            },
            source='sequencing_stage',
            tenant_id=lead.tenant_id,
        )

        emitted = None
        if AUTO_DEPLOY and sequence.status == READY:
            next_event = SequenceReady(lead_id=lead.id, tenant_id=lead.tenant_id, sequence_id=sequence.id)
            self.publish(next_event)
            emitted = next_event.name

        logger.info("Sequence %s for lead %s stored as %s", sequence.id, lead.id, sequence.status,
                    extra={'lead_id': lead.id, 'sequence_id': sequence.id, 'stage': self.name})
        return StageResult(status=COMPLETED, lead_id=lead.id, emitted=emitted,
                           meta={'sequence_id': sequence.id, 'sequence_status': sequence.status})
