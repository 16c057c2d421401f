"""
Audit logger — best-effort lead memory entries.

Audit completeness and content correctness have different durability needs:
a failed append is logged and swallowed, and never undoes the mutation that
was already committed.
"""
import logging

from outbound.services import store

logger = logging.getLogger('services.audit')


def record(lead_id, event_type, description='', context=None, source='system', tenant_id=None):
    """Append a memory entry for a lead. Returns the entry id, or None if the append failed."""
    if not lead_id:
        return None
    try:
        return store.append_memory(
            lead_id,
            event_type,
            description=description,
            context=context,
            source=source,
            tenant_id=tenant_id,
        )
    except Exception:
        logger.error("Failed to append %s memory for lead %s", event_type, lead_id,
                     exc_info=True, extra={'lead_id': lead_id})
        return None
