"""
Outbound send system client — hands a ready sequence over for delivery.
"""
import logging
import requests

from outbound.config import SEND_API_URL, SEND_API_KEY, SEND_TIMEOUT_SECONDS
from outbound.pipeline.errors import UpstreamFailure

logger = logging.getLogger('services.sender')


def dispatch_sequence(lead, sequence) -> str:
    """
    POST the sequence to the send system and return its reference id.

    Any transport or HTTP error raises UpstreamFailure; the caller leaves the
    sequence at 'ready' so the delivery can be retried.
    """
    if not SEND_API_URL:
        raise UpstreamFailure("SEND_API_URL not configured")

    payload = {
        'lead': {
            'id': lead.id,
            'email': lead.email,
            'first_name': lead.first_name,
            'last_name': lead.last_name,
            'company_name': lead.company_name,
        },
        'sequence_id': sequence.id,
        'threads': [t for t in (sequence.thread_1, sequence.thread_2) if t],
    }
    headers = {'Content-Type': 'application/json'}
    if SEND_API_KEY:
        headers['Authorization'] = f'Bearer {SEND_API_KEY}'

    try:
        response = requests.post(SEND_API_URL, json=payload, headers=headers, timeout=SEND_TIMEOUT_SECONDS)
        response.raise_for_status()
        body = response.json() if response.content else {}
    except (requests.RequestException, ValueError) as e:
        logger.error("Send system rejected sequence %s: %s", sequence.id, e)
        raise UpstreamFailure(f"Send system request failed: {e}")

    reference = str(body.get('id') or body.get('reference') or '')
    logger.info("Sequence %s dispatched to send system (ref=%s)", sequence.id, reference or 'n/a')
    return reference
