"""Tests for outbound.pipeline.orchestrator — re-runs, content guard, deploy requests."""
import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from outbound.models.research_record import ResearchRecord
from outbound.pipeline import orchestrator
from outbound.pipeline.dispatch import dispatch_event
from outbound.pipeline.errors import IllegalTransition, NotFound, PreconditionFailed, UpstreamFailure
from outbound.services import store

MANUAL = {'decision': 'YES', 'reasoning': 'manual re-run', 'confidence': 100}


# ---------------------------------------------------------------------------
# rerun_pipeline_step
# ---------------------------------------------------------------------------

class TestRerunPipelineStep:

    def test_research_rerun_publishes_forced_qualification(self, make_lead, event_bus):
        lead = make_lead(qualification_decision='NO', qualification_confidence=10)

        result = orchestrator.rerun_pipeline_step(lead.id, 'research')

        assert result == {'status': 'triggered', 'step': 'research'}
        assert event_bus.published == [('lead.ready-for-deployment', {
            'lead_id': lead.id, 'tenant_id': lead.tenant_id, 'qualification': MANUAL,
        })]

    def test_rerun_is_audited(self, make_lead):
        lead = make_lead()
        orchestrator.rerun_pipeline_step(lead.id, 'research')
        [memory] = store.list_memories(lead.id)
        assert memory.event_type == 'pipeline_rerun'
        assert memory.context['step'] == 'research'
        assert memory.source == 'orchestrator'

    def test_sequence_rerun_carries_stored_research(self, make_lead, make_research, event_bus):
        lead = make_lead()
        make_research(lead, {
            'persona_match': {'type': 'Founder'},
            'triggers': [{'fact': str(i)} for i in range(6)],
            'messaging_angles': [{'angle': 'speed'}],
        })

        result = orchestrator.rerun_pipeline_step(lead.id, 'sequence')

        assert result == {'status': 'triggered', 'step': 'sequence'}
        [(name, payload)] = event_bus.published
        assert name == 'lead.research-complete'
        assert payload['persona_match'] == {'type': 'Founder'}
        assert payload['top_triggers'] == [{'fact': '0'}, {'fact': '1'}, {'fact': '2'}]
        assert payload['messaging_angles'] == [{'angle': 'speed'}]
        assert payload['qualification'] == MANUAL

    def test_sequence_rerun_without_research_emits_nothing(self, make_lead, event_bus):
        lead = make_lead()
        with pytest.raises(PreconditionFailed, match='run research first'):
            orchestrator.rerun_pipeline_step(lead.id, 'sequence')
        assert event_bus.published == []
        assert store.list_memories(lead.id) == []

    def test_invalid_step_checked_first(self, event_bus):
        with pytest.raises(PreconditionFailed, match='Invalid step'):
            orchestrator.rerun_pipeline_step('ghost', 'deploy')
        assert event_bus.published == []

    def test_missing_lead(self):
        with pytest.raises(NotFound):
            orchestrator.rerun_pipeline_step('ghost', 'research')

    def test_repeated_reruns_are_not_deduplicated(self, make_lead, event_bus):
        lead = make_lead()
        orchestrator.rerun_pipeline_step(lead.id, 'research')
        orchestrator.rerun_pipeline_step(lead.id, 'research')
        assert event_bus.names() == ['lead.ready-for-deployment'] * 2

    @patch('outbound.pipeline.dispatch.notify_stage_failed')
    @patch('outbound.pipeline.research.generate_research',
           return_value={'persona_match': {}, 'triggers': [{'fact': 'x'}], 'messaging_angles': []})
    def test_two_research_reruns_leave_one_record(self, mock_generate, mock_notify, make_lead, make_bus,
                                                 TestSession):
        lead = make_lead()
        bus = make_bus()
        for _ in range(2):
            orchestrator.rerun_pipeline_step(lead.id, 'research', bus=bus)
        for name, payload in list(bus.published):
            if name == 'lead.ready-for-deployment':
                dispatch_event(name, payload, bus=bus)

        session = TestSession()
        try:
            assert session.query(ResearchRecord).filter_by(lead_id=lead.id).count() == 1
        finally:
            session.close()
        assert mock_generate.call_count == 2

    def test_publish_failure_surfaces_and_is_not_audited(self, make_lead, make_bus):
        lead = make_lead()
        bus = make_bus(fail_with=UpstreamFailure('redis down'))
        with pytest.raises(UpstreamFailure):
            orchestrator.rerun_pipeline_step(lead.id, 'research', bus=bus)
        assert store.list_memories(lead.id) == []


# ---------------------------------------------------------------------------
# update_sequence_content
# ---------------------------------------------------------------------------

class TestUpdateSequenceContent:

    def test_partial_update_keeps_omitted_thread(self, make_lead, make_sequence, thread):
        lead = make_lead()
        sequence = make_sequence(lead, status='drafting')

        result = orchestrator.update_sequence_content(sequence.id, thread1=thread('Edited'))

        assert result == {'success': True}
        stored = store.get_sequence(sequence.id)
        assert stored.thread_1['subject'] == 'Edited'
        assert stored.thread_2['subject'] == 'Thread two'

    def test_explicit_none_clears_thread(self, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead, status='ready')

        orchestrator.update_sequence_content(sequence.id, thread2=None)

        stored = store.get_sequence(sequence.id)
        assert stored.thread_2 is None
        assert stored.thread_1['subject'] == 'Thread one'

    @pytest.mark.parametrize('status', ['deployed', 'completed'])
    def test_locked_sequence_refused_and_unchanged(self, status, make_lead, make_sequence, thread):
        lead = make_lead()
        sequence = make_sequence(lead, status=status)

        with pytest.raises(PreconditionFailed):
            orchestrator.update_sequence_content(sequence.id, thread1=thread('Sneaky'), thread2=None)

        stored = store.get_sequence(sequence.id)
        assert stored.thread_1['subject'] == 'Thread one'
        assert stored.thread_2['subject'] == 'Thread two'
        assert store.list_memories(lead.id) == []

    @pytest.mark.parametrize('status', ['drafting', 'ready', 'deployed', 'completed'])
    def test_empty_update_always_refused(self, status, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead, status=status)
        with patch('outbound.services.store.get_sequence') as mock_get:
            with pytest.raises(PreconditionFailed, match='No content provided'):
                orchestrator.update_sequence_content(sequence.id)
        mock_get.assert_not_called()

    def test_missing_sequence(self, thread):
        with pytest.raises(NotFound):
            orchestrator.update_sequence_content('ghost', thread1=thread())

    def test_malformed_thread_refused(self, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead)
        with pytest.raises(PreconditionFailed, match='thread1'):
            orchestrator.update_sequence_content(sequence.id, thread1={'subject': 'x'})

    def test_edit_is_audited(self, make_lead, make_sequence, thread):
        lead = make_lead()
        sequence = make_sequence(lead)
        orchestrator.update_sequence_content(sequence.id, thread1=thread(), thread2=None)
        [memory] = store.list_memories(lead.id)
        assert memory.event_type == 'sequence_edited'
        assert memory.source == 'human_edit'
        assert memory.context == {'sequence_id': sequence.id, 'edited_threads': ['thread1', 'thread2']}

    def test_audit_failure_still_succeeds(self, make_lead, make_sequence, thread):
        lead = make_lead()
        sequence = make_sequence(lead)
        with patch('outbound.services.store.append_memory',
                   side_effect=OperationalError('INSERT', {}, Exception('locked'))):
            result = orchestrator.update_sequence_content(sequence.id, thread1=thread('Kept'))
        assert result == {'success': True}
        assert store.get_sequence(sequence.id).thread_1['subject'] == 'Kept'

    def test_lost_race_with_deployment_refused(self, make_lead, make_sequence, thread):
        lead = make_lead()
        sequence = make_sequence(lead, status='ready')
        # Deployment lands between the status read and the conditional write.
        store.transition_sequence(sequence.id, 'ready', 'deployed')
        stale = sequence.__class__(id=sequence.id, lead_id=lead.id, tenant_id=lead.tenant_id, status='ready')

        with patch('outbound.services.store.get_sequence', side_effect=[stale, store.get_sequence(sequence.id)]):
            with pytest.raises(PreconditionFailed, match='deployed'):
                orchestrator.update_sequence_content(sequence.id, thread1=thread('Late'))
        assert store.get_sequence(sequence.id).thread_1['subject'] == 'Thread one'


# ---------------------------------------------------------------------------
# mark_sequence_ready / request_deployment
# ---------------------------------------------------------------------------

class TestMarkSequenceReady:

    def test_drafting_becomes_ready(self, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead, status='drafting')
        assert orchestrator.mark_sequence_ready(sequence.id) == {'success': True, 'status': 'ready'}
        assert store.get_sequence(sequence.id).status == 'ready'
        assert 'sequence_status_changed' in [m.event_type for m in store.list_memories(lead.id)]

    def test_audit_records_status_it_moved_from(self, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead, status='drafting')
        orchestrator.mark_sequence_ready(sequence.id)

        [memory] = [m for m in store.list_memories(lead.id) if m.event_type == 'sequence_status_changed']
        assert memory.context == {'sequence_id': sequence.id, 'from': 'drafting', 'to': 'ready'}

    @pytest.mark.parametrize('status', ['ready', 'deployed', 'completed'])
    def test_other_statuses_are_illegal(self, status, make_lead, make_sequence):
        lead = make_lead()
        sequence = make_sequence(lead, status=status)
        with pytest.raises(IllegalTransition):
            orchestrator.mark_sequence_ready(sequence.id)
        assert store.get_sequence(sequence.id).status == status

    def test_missing_sequence(self):
        with pytest.raises(NotFound):
            orchestrator.mark_sequence_ready('ghost')


class TestRequestDeployment:

    def test_ready_sequence_publishes_event(self, make_lead, make_sequence, event_bus):
        lead = make_lead()
        sequence = make_sequence(lead, status='ready')

        result = orchestrator.request_deployment(lead.id)

        assert result == {'status': 'triggered', 'sequence_id': sequence.id}
        assert event_bus.published == [('lead.sequence-ready', {
            'lead_id': lead.id, 'tenant_id': lead.tenant_id, 'sequence_id': sequence.id,
        })]

    def test_drafting_sequence_refused(self, make_lead, make_sequence, event_bus):
        lead = make_lead()
        make_sequence(lead, status='drafting')
        with pytest.raises(PreconditionFailed):
            orchestrator.request_deployment(lead.id)
        assert event_bus.published == []

    def test_no_sequence_refused(self, make_lead):
        lead = make_lead()
        with pytest.raises(PreconditionFailed, match='No sequence'):
            orchestrator.request_deployment(lead.id)

    def test_missing_lead(self):
        with pytest.raises(NotFound):
            orchestrator.request_deployment('ghost')


# ---------------------------------------------------------------------------
# read views
# ---------------------------------------------------------------------------

class TestReadViews:

    def test_pipeline_for_fresh_lead(self, make_lead):
        lead = make_lead()
        assert orchestrator.get_lead_pipeline(lead.id) == {
            'lead_id': lead.id, 'stage': 'pending-research',
            'sequence_status': None, 'has_research': False,
        }

    def test_pipeline_follows_sequence(self, make_lead, make_research, make_sequence):
        lead = make_lead()
        make_research(lead)
        make_sequence(lead, status='deployed')
        view = orchestrator.get_lead_pipeline(lead.id)
        assert view['stage'] == 'deployed'
        assert view['has_research'] is True

    def test_memories_for_missing_lead(self):
        with pytest.raises(NotFound):
            orchestrator.list_lead_memories('ghost')

    def test_memories_as_dicts(self, make_lead):
        lead = make_lead()
        store.append_memory(lead.id, 'pipeline_rerun')
        [memory] = orchestrator.list_lead_memories(lead.id)
        assert memory['event_type'] == 'pipeline_rerun'
        assert memory['lead_id'] == lead.id
