"""
Deployment stage — consumes lead.sequence-ready.

Hands a ready sequence to the send system, then moves it ready → deployed.
If the send fails the status stays 'ready' and the error propagates so the
bus retries.
"""
import logging
from datetime import datetime, timezone

from outbound.pipeline.base import Stage, StageResult, COMPLETED, SKIPPED
from outbound.pipeline.errors import NotFound, PreconditionFailed
from outbound.pipeline.events import SequenceReady
from outbound.pipeline.state import READY, DEPLOYED, is_editable
from outbound.services import audit, store
from outbound.services.sender import dispatch_sequence

logger = logging.getLogger('pipeline.deployment')


class DeploymentStage(Stage):
    name = 'deployment'
    consumes = SequenceReady
    description = 'Dispatch to the outbound send system'

    def run(self, event: SequenceReady) -> StageResult:
        sequence = store.get_sequence(event.sequence_id)
        if sequence is None:
            raise NotFound(f"Sequence not found: {event.sequence_id}")

        if not is_editable(sequence.status):
            logger.info("Sequence %s already %s — redelivery ignored", sequence.id, sequence.status)
            return StageResult(status=SKIPPED, lead_id=sequence.lead_id,
                               detail=f"sequence already {sequence.status}")

        if sequence.status != READY:
            raise PreconditionFailed(
                f"Sequence {sequence.id} is '{sequence.status}', only 'ready' sequences deploy",
            )

        lead = store.get_lead(sequence.lead_id)
        if lead is None:
            raise NotFound(f"Lead not found: {sequence.lead_id}")

        reference = dispatch_sequence(lead, sequence)

        moved = store.transition_sequence(sequence.id, READY, DEPLOYED, {
            'send_reference': reference or None,
            'deployed_at': datetime.now(timezone.utc),
        })
        if not moved:
            logger.warning("Sequence %s left 'ready' while dispatching — status not changed", sequence.id)
            return StageResult(status=SKIPPED, lead_id=lead.id,
                               detail='sequence status changed during dispatch',
                               meta={'sequence_id': sequence.id, 'send_reference': reference})

        audit.record(
            lead.id,
            'sequence_deployed',
            description='Sequence handed to the send system',
            context={'sequence_id': sequence.id, 'send_reference': reference},
            source='deployment_stage',
            tenant_id=lead.tenant_id,
        )
        logger.info("Sequence %s deployed for lead %s", sequence.id, lead.id,
                    extra={'lead_id': lead.id, 'sequence_id': sequence.id, 'stage': self.name})
        return StageResult(status=COMPLETED, lead_id=lead.id,
                           meta={'sequence_id': sequence.id, 'send_reference': reference})
