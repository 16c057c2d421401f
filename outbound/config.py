"""
Centralized configuration — env vars, pipeline constants, event bus tuning.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (event bus transport) ──────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI (research + sequence generation) ──────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o')

# ── Outbound send system ─────────────────────────────────────────────────────
SEND_API_URL = os.getenv('SEND_API_URL')
SEND_API_KEY = os.getenv('SEND_API_KEY')
SEND_TIMEOUT_SECONDS = int(os.getenv('SEND_TIMEOUT_SECONDS', '30'))

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Event bus (RQ) ───────────────────────────────────────────────────────────
EVENT_QUEUE_NAME = os.getenv('EVENT_QUEUE_NAME', 'pipeline-events')
EVENT_JOB_TIMEOUT = int(os.getenv('EVENT_JOB_TIMEOUT', '900'))
EVENT_RETRY_MAX = int(os.getenv('EVENT_RETRY_MAX', '2'))
EVENT_RETRY_INTERVALS = [
    int(s) for s in os.getenv('EVENT_RETRY_INTERVALS', '30,120').split(',') if s.strip()
]

# Sequencing publishes lead.sequence-ready on its own only when enabled;
# otherwise deployment waits for an operator to call POST /api/leads/<id>/deploy.
AUTO_DEPLOY = os.getenv('AUTO_DEPLOY', '').lower() in ('1', 'true', 'yes')

# ── Pipeline constants ───────────────────────────────────────────────────────
PIPELINE_STEPS = ['research', 'sequence']

# Emitters cap the trigger list carried by lead.research-complete.
TOP_TRIGGERS_LIMIT = 3

# Manual re-runs override whatever the automated qualifier decided.
MANUAL_RERUN_QUALIFICATION = {
    'decision': 'YES',
    'reasoning': 'manual re-run',
    'confidence': 100,
}
