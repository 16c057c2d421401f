"""
Research stage — consumes lead.ready-for-deployment.

Fetches the lead, runs research generation, overwrites the lead's research
record and then emits lead.research-complete with the top triggers.
"""
import logging

from outbound.pipeline.base import Stage, StageResult, COMPLETED, SKIPPED
from outbound.pipeline.errors import NotFound
from outbound.pipeline.events import ReadyForDeployment, research_complete_from_signals
from outbound.services import audit, store
from outbound.services.generation import generate_research

logger = logging.getLogger('pipeline.research')


class ResearchStage(Stage):
    name = 'research'
    consumes = ReadyForDeployment
    description = 'Persona, trigger and messaging-angle research via OpenAI'

    def run(self, event: ReadyForDeployment) -> StageResult:
        lead = store.get_lead(event.lead_id)
        if lead is None:
            raise NotFound(f"Lead not found: {event.lead_id}")

        if event.qualification.decision == 'NO':
            logger.info("Lead %s qualified NO — research skipped", lead.id)
            return StageResult(status=SKIPPED, lead_id=lead.id, detail='qualification decision is NO')

        logger.info("Researching lead %s (%s at %s)", lead.id, lead.email, lead.company_name,
                    extra={'lead_id': lead.id, 'stage': self.name})
        signals = generate_research(lead)

        # Re-runs overwrite: one research record per lead, however often this runs.
        record = store.upsert_research_record(lead.id, signals)

        triggers = signals.get('triggers') or []
        persona = (signals.get('persona_match') or {}).get('type')
        audit.record(
            lead.id,
            'research_completed',
            description=f"Research stored: persona={persona or 'unknown'}, {len(triggers)} triggers",
            context={
                'research_record_id': record.id,
                'trigger_count': len(triggers),
                'qualification': event.qualification.to_payload(),
            },
            source='research_stage',
            tenant_id=lead.tenant_id,
        )

        next_event = research_complete_from_signals(
            lead.id, lead.tenant_id, record.extracted_signals, event.qualification,
        )
        self.publish(next_event)

        return StageResult(
            status=COMPLETED,
            lead_id=lead.id,
            emitted=next_event.name,
            meta={'trigger_count': len(triggers), 'top_triggers': len(next_event.top_triggers)},
        )
