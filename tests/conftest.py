"""Shared test fixtures."""
import uuid

import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from outbound.database import Base

# Modules that bind get_session at import time; each needs its own patch.
_SESSION_SITES = (
    'outbound.database.get_session',
    'outbound.services.store.get_session',
    'outbound.routes.account.get_session',
    'outbound.routes.settings.get_session',
)


class RecordingEventBus:
    """In-memory bus that records every publication instead of enqueueing it."""

    def __init__(self, fail_with=None):
        self.published = []
        self.fail_with = fail_with

    def publish(self, name, payload):
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append((name, payload))
        return f'ack-{len(self.published)}'

    def names(self):
        return [name for name, _ in self.published]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across sessions."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import outbound.models.tenant
    import outbound.models.lead
    import outbound.models.research_record
    import outbound.models.email_sequence
    import outbound.models.lead_memory
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def TestSession(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture(autouse=True)
def patch_get_session(TestSession):
    """Route every get_session() call to a fresh session on the test engine.

    Production code closes its sessions in finally blocks, so each call gets
    its own session rather than one shared test session.
    """
    patchers = [patch(site, side_effect=lambda: TestSession()) for site in _SESSION_SITES]
    for p in patchers:
        p.start()
    yield TestSession
    for p in reversed(patchers):
        p.stop()


@pytest.fixture
def db_session(TestSession):
    """Session for seeding and inspecting rows directly."""
    session = TestSession()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def event_bus():
    """Install a recording bus as the process-wide event bus."""
    from outbound.pipeline.bus import set_event_bus
    bus = RecordingEventBus()
    set_event_bus(bus)
    yield bus
    set_event_bus(None)


@pytest.fixture
def make_bus():
    """Factory for standalone recording buses, e.g. one that fails on publish."""
    return RecordingEventBus


@pytest.fixture
def app():
    """Flask test app."""
    from outbound import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Seed factories ───────────────────────────────────────────────────────────

@pytest.fixture
def make_tenant(db_session):
    from outbound.models.tenant import Tenant

    def _make(**overrides):
        defaults = dict(name='Acme Outbound', slug=f'acme-{uuid.uuid4().hex[:8]}', settings={})
        defaults.update(overrides)
        tenant = Tenant(**defaults)
        db_session.add(tenant)
        db_session.commit()
        return tenant
    return _make


@pytest.fixture
def make_lead(db_session, make_tenant):
    from outbound.models.lead import Lead

    def _make(tenant=None, **overrides):
        tenant = tenant or make_tenant()
        defaults = dict(
            tenant_id=tenant.id,
            first_name='Dana',
            last_name='Reyes',
            email='dana@northwind.io',
            job_title='VP Sales',
            company_name='Northwind',
            company_domain='northwind.io',
            qualification_decision='YES',
            qualification_reasoning='ICP match',
            qualification_confidence=82,
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.commit()
        return lead
    return _make


@pytest.fixture
def make_research(db_session):
    from outbound.models.research_record import ResearchRecord

    def _make(lead, signals=None):
        record = ResearchRecord(lead_id=lead.id, extracted_signals=signals if signals is not None else {
            'persona_match': {'type': 'Revenue leader', 'confidence': 80},
            'triggers': [
                {'type': 'funding', 'fact': 'Raised Series B', 'score': 90},
                {'type': 'hiring', 'fact': 'Hiring 12 SDRs', 'score': 75},
            ],
            'messaging_angles': [{'angle': 'Ramp new reps faster'}],
        })
        db_session.add(record)
        db_session.commit()
        return record
    return _make


@pytest.fixture
def thread():
    def _make(subject='Quick idea', bodies=('Hi Dana', 'Following up')):
        return {
            'subject': subject,
            'emails': [{'subject': subject, 'body': body} for body in bodies],
        }
    return _make


@pytest.fixture
def make_sequence(db_session, thread):
    from outbound.models.email_sequence import EmailSequence

    def _make(lead, status='drafting', **overrides):
        defaults = dict(
            lead_id=lead.id,
            tenant_id=lead.tenant_id,
            status=status,
            thread_1=thread('Thread one'),
            thread_2=thread('Thread two'),
        )
        defaults.update(overrides)
        sequence = EmailSequence(**defaults)
        db_session.add(sequence)
        db_session.commit()
        return sequence
    return _make
