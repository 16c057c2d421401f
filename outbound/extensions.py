"""
Shared client instances — Redis (event bus transport) and OpenAI.

Importing this module never opens a connection: redis.from_url() is lazy and
the OpenAI client is only built when a key is configured.
"""
import logging
import redis

from outbound.config import REDIS_URL, OPENAI_API_KEY

logger = logging.getLogger('outbound.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
# RQ stores pickled job payloads, so no decode_responses here.
redis_client = redis.from_url(REDIS_URL)

# ── OpenAI ────────────────────────────────────────────────────────────────────
openai_client = None
if OPENAI_API_KEY:
    try:
        from openai import OpenAI
        openai_client = OpenAI(api_key=OPENAI_API_KEY)
        logger.info("OpenAI client initialized successfully")
    except Exception as e:
        logger.error("Error initializing OpenAI client: %s", e)
else:
    logger.warning("OPENAI_API_KEY not set — research and sequencing stages will fail")
