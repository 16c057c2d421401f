"""
Record store — the only shared mutable resource of the pipeline.

Reads are get-or-absent: they return None instead of raising, so callers branch
on absence. Every write touches exactly one row and commits before returning;
a failed write is rolled back and surfaces as UpstreamFailure. Stage writes are
upserts keyed on lead_id so duplicate event deliveries converge on one row.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from outbound.database import get_session
from outbound.models.lead import Lead
from outbound.models.research_record import ResearchRecord
from outbound.models.email_sequence import EmailSequence
from outbound.models.lead_memory import LeadMemory
from outbound.pipeline.errors import UpstreamFailure
from outbound.pipeline.state import check_transition, is_editable, status_rank

logger = logging.getLogger('services.store')


# ── Reads ────────────────────────────────────────────────────────────────────

def get_lead(lead_id):
    session = get_session()
    try:
        return session.get(Lead, lead_id)
    finally:
        session.close()


def get_research_record(lead_id):
    session = get_session()
    try:
        return session.query(ResearchRecord).filter_by(lead_id=lead_id).first()
    finally:
        session.close()


def get_sequence(sequence_id):
    session = get_session()
    try:
        return session.get(EmailSequence, sequence_id)
    finally:
        session.close()


def get_sequence_for_lead(lead_id):
    session = get_session()
    try:
        return session.query(EmailSequence).filter_by(lead_id=lead_id).first()
    finally:
        session.close()


def list_memories(lead_id, limit=200):
    """The newest `limit` audit entries for a lead, returned oldest first."""
    session = get_session()
    try:
        rows = (
            session.query(LeadMemory)
            .filter_by(lead_id=lead_id)
            .order_by(LeadMemory.created_at.desc(), LeadMemory.id.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(rows))
    finally:
        session.close()


# ── Stage writes (upsert by lead_id) ─────────────────────────────────────────

def upsert_research_record(lead_id, extracted_signals):
    """INSERT or overwrite the research record for a lead."""
    def _apply(session):
        record = session.query(ResearchRecord).filter_by(lead_id=lead_id).first()
        if record is None:
            record = ResearchRecord(lead_id=lead_id, extracted_signals=extracted_signals)
            session.add(record)
        else:
            record.extracted_signals = extracted_signals
            record.updated_at = _now()
        return record

    return _upsert('research record', lead_id, _apply)


def upsert_sequence(lead_id, tenant_id, fields):
    """
    INSERT or update the email sequence for a lead.

    `fields` may carry thread_1, thread_2 and status. A deployed/completed
    sequence is returned untouched, and status never moves backwards: an
    update that would lower it keeps the stored status.
    """
    def _apply(session):
        sequence = session.query(EmailSequence).filter_by(lead_id=lead_id).first()
        if sequence is None:
            sequence = EmailSequence(lead_id=lead_id, tenant_id=tenant_id, **fields)
            session.add(sequence)
            return sequence
        if not is_editable(sequence.status):
            return sequence

        values = dict(fields)
        if 'status' in values and status_rank(values['status']) < status_rank(sequence.status):
            values.pop('status')
        for key, value in values.items():
            setattr(sequence, key, value)
        sequence.updated_at = _now()
        return sequence

    return _upsert('sequence', lead_id, _apply)


def _upsert(label, lead_id, apply):
    """
    Run an upsert in its own session.

    Two deliveries of the same event can both miss the row and both INSERT; the
    loser hits the unique lead_id constraint and is replayed once as an update.
    """
    for attempt in (1, 2):
        session = get_session()
        try:
            row = apply(session)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row
        except IntegrityError:
            session.rollback()
            if attempt == 2:
                logger.error("Upsert of %s for lead %s kept conflicting", label, lead_id, exc_info=True)
                raise UpstreamFailure(f"Failed to store {label} for lead {lead_id}")
            logger.info("Concurrent insert of %s for lead %s — retrying as update", label, lead_id)
        except SQLAlchemyError:
            session.rollback()
            logger.error("Failed to store %s for lead %s", label, lead_id, exc_info=True)
            raise UpstreamFailure(f"Failed to store {label} for lead {lead_id}")
        finally:
            session.close()


# ── Guarded sequence writes ──────────────────────────────────────────────────

def update_sequence_if_status(sequence_id, allowed_statuses, fields):
    """
    Conditional single-row UPDATE: applies `fields` only while the sequence's
    status is one of `allowed_statuses`.

    Returns True when the row was updated, False when the status had already
    moved on (or the row is gone).
    """
    values = dict(fields)
    values['updated_at'] = _now()
    session = get_session()
    try:
        updated = (
            session.query(EmailSequence)
            .filter(EmailSequence.id == sequence_id, EmailSequence.status.in_(list(allowed_statuses)))
            .update(values, synchronize_session=False)
        )
        session.commit()
        return updated == 1
    except SQLAlchemyError:
        session.rollback()
        logger.error("Failed to update sequence %s", sequence_id, exc_info=True)
        raise UpstreamFailure(f"Failed to update sequence {sequence_id}")
    finally:
        session.close()


def transition_sequence(sequence_id, current, target, extra_fields=None):
    """
    Move a sequence one step forward, current → target, atomically.

    Raises IllegalTransition for anything but a single forward step. Returns
    False when the stored status is no longer `current`.
    """
    check_transition(current, target)
    fields = dict(extra_fields or {})
    fields['status'] = target
    return update_sequence_if_status(sequence_id, (current,), fields)


# ── Audit trail ──────────────────────────────────────────────────────────────

def append_memory(lead_id, event_type, description='', context=None, source='system', tenant_id=None):
    """INSERT one immutable memory row. Raises on failure; see services.audit for the best-effort wrapper."""
    session = get_session()
    try:
        memory = LeadMemory(
            lead_id=lead_id,
            tenant_id=tenant_id,
            source=source,
            event_type=event_type,
            description=description,
            context=context or {},
        )
        session.add(memory)
        session.commit()
        return memory.id
    except SQLAlchemyError:
        session.rollback()
        raise
    finally:
        session.close()


def _now():
    return datetime.now(timezone.utc)
