"""Tests for structured logging configuration."""
import json
import logging
import os
from unittest.mock import patch

import pytest

from outbound.logging_config import configure_logging, JSONFormatter


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_log_level_case_insensitive(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'debug'}):
            configure_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_log_level_defaults_to_info(self):
        with patch.dict(os.environ, {'LOG_LEVEL': 'NONSENSE'}):
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_text_format(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text', 'LOG_LEVEL': 'INFO'}):
            configure_logging()
        logging.getLogger('pipeline.research').info("researching lead-1")
        output = capsys.readouterr().err
        assert 'pipeline.research' in output
        assert 'researching lead-1' in output
        assert 'INFO' in output

    def test_json_format_includes_pipeline_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json', 'LOG_LEVEL': 'INFO'}):
            configure_logging()
        logging.getLogger('pipeline.dispatch').warning(
            "stage failed", extra={'lead_id': 'lead-1', 'event': 'lead.research-complete'},
        )
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'WARNING'
        assert parsed['logger'] == 'pipeline.dispatch'
        assert parsed['lead_id'] == 'lead-1'
        assert parsed['event'] == 'lead.research-complete'
        assert 'sequence_id' not in parsed

    def test_third_party_loggers_quieted_to_warning(self):
        configure_logging()
        for name in ['urllib3', 'openai', 'httpcore', 'httpx', 'rq.worker']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_no_duplicate_handlers_on_repeated_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJSONFormatter:

    def test_includes_exception(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = logging.LogRecord(
                name='test', level=logging.ERROR, pathname='', lineno=0,
                msg='failed %s', args=('hard',), exc_info=sys.exc_info(),
            )
        parsed = json.loads(formatter.format(record))
        assert parsed['message'] == 'failed hard'
        assert 'ValueError' in parsed['exception']
