"""
Event dispatch — the RQ job that routes a delivered event to its stage.

Failures the caller must fix (bad payload, missing records, wrong status) are
recorded and dropped; retrying cannot help. Upstream and unexpected failures
are recorded and re-raised so RQ retries the job.
"""
import logging
from typing import Dict, Type

from outbound.pipeline.base import Stage, StageResult, FAILED
from outbound.pipeline.deployment import DeploymentStage
from outbound.pipeline.errors import NotFound, PreconditionFailed
from outbound.pipeline.events import InvalidEvent, parse_event
from outbound.pipeline.research import ResearchStage
from outbound.pipeline.sequencing import SequencingStage
from outbound.services import audit
from outbound.services.notifications import notify_stage_failed

logger = logging.getLogger('pipeline.dispatch')


# ── Stage registry ────────────────────────────────────────────────────────────
# event name → stage class consuming it

STAGE_REGISTRY: Dict[str, Type[Stage]] = {
    stage_cls.consumes.name: stage_cls
    for stage_cls in (ResearchStage, SequencingStage, DeploymentStage)
}


def dispatch_event(name, payload, bus=None):
    """Parse the event, run its stage, and report failures out-of-band."""
    stage_cls = STAGE_REGISTRY.get(name)
    if stage_cls is None:
        logger.warning("No stage consumes %s — event ignored", name)
        return None

    lead_id = payload.get('lead_id') if isinstance(payload, dict) else None
    logger.info("Stage '%s' picked up %s for lead %s", stage_cls.name, name, lead_id,
                extra={'lead_id': lead_id, 'event': name, 'stage': stage_cls.name})

    try:
        event = parse_event(name, payload)
        result = stage_cls(bus=bus).run(event)
    except (InvalidEvent, NotFound, PreconditionFailed) as e:
        _record_failure(stage_cls.name, name, lead_id, e, will_retry=False)
        return StageResult(status=FAILED, lead_id=lead_id, detail=str(e))
    except Exception as e:
        _record_failure(stage_cls.name, name, lead_id, e, will_retry=True)
        raise

    logger.info("Stage '%s' %s for lead %s%s", stage_cls.name, result.status, result.lead_id,
                f" — emitted {result.emitted}" if result.emitted else '')
    return result


def _record_failure(stage_name, event_name, lead_id, error, will_retry):
    logger.error("Stage '%s' FAILED on %s for lead %s: %s", stage_name, event_name, lead_id, error,
                 exc_info=will_retry, extra={'lead_id': lead_id, 'event': event_name, 'stage': stage_name})
    audit.record(
        lead_id,
        'stage_failed',
        description=f"{stage_name} failed: {error}",
        context={'stage': stage_name, 'event': event_name, 'error': str(error), 'will_retry': will_retry},
        source=f'{stage_name}_stage',
    )
    notify_stage_failed(stage_name, event_name, lead_id, error, will_retry=will_retry)
