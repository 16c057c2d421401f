"""
OpenAI helpers — research signal extraction and email sequence writing.

Both are black boxes to the pipeline: they take a lead (plus upstream context)
and return JSON-shaped dicts. Transport/API errors surface as UpstreamFailure
so the event bus retries the stage.
"""
import json
import logging
from typing import Any, Dict

from outbound.config import OPENAI_MODEL
from outbound.pipeline.errors import UpstreamFailure

logger = logging.getLogger('services.generation')


def _client():
    from outbound.extensions import openai_client
    if openai_client is None:
        raise UpstreamFailure("OpenAI client not configured (OPENAI_API_KEY missing)")
    return openai_client


def _json_completion(prompt: str) -> Dict[str, Any]:
    client = _client()
    try:
        response = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
        )
        result = json.loads(response.choices[0].message.content)
    except UpstreamFailure:
        raise
    except json.JSONDecodeError as e:
        raise UpstreamFailure(f"Model returned invalid JSON: {e}")
    except Exception as e:
        logger.error("OpenAI completion failed: %s", e)
        raise UpstreamFailure(f"OpenAI request failed: {e}")

    if not isinstance(result, dict):
        raise UpstreamFailure(f"Model returned JSON {type(result).__name__}, expected an object")
    return result


def _describe_lead(lead) -> str:
    name = f"{lead.first_name or ''} {lead.last_name or ''}".strip() or 'Unknown'
    lines = [
        f"Name: {name}",
        f"Title: {lead.job_title or 'unknown'}",
        f"Company: {lead.company_name or 'unknown'} ({lead.company_domain or 'no domain'})",
    ]
    if lead.linkedin_url:
        lines.append(f"LinkedIn: {lead.linkedin_url}")
    return '\n'.join(lines)


def _as_persona(value):
    """A bare persona name becomes {"type": name}; anything else but a dict is dropped."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        return {'type': value.strip()}
    return {}


def _as_list(value):
    return list(value) if isinstance(value, list) else []


def generate_research(lead) -> Dict[str, Any]:
    """Extract persona match, ranked triggers and messaging angles for a lead."""
    result = _json_completion(f"""You are a B2B sales research analyst.

LEAD:
{_describe_lead(lead)}

Identify the buyer persona, the strongest timely triggers for outreach, and messaging angles.

Respond in JSON:
{{
  "persona_match": {{"type": "persona name", "decision_level": "ATL|BTL|unknown", "confidence": 0-100, "reasoning": "1 sentence"}},
  "triggers": [{{"type": "funding|hiring|product|content|other", "fact": "specific fact", "score": 0-100}}],
  "messaging_angles": [{{"angle": "short angle", "why_opening": "1 sentence"}}]
}}
Order triggers from strongest to weakest.""")

    return {
        'persona_match': _as_persona(result.get('persona_match')),
        'triggers': _as_list(result.get('triggers')),
        'messaging_angles': _as_list(result.get('messaging_angles')),
    }


def write_sequence(lead, research) -> Dict[str, Any]:
    """
    Write two outbound threads for a lead from its research event.

    Returns {"thread_1": {...} | None, "thread_2": {...} | None}.
    """
    context = {
        'persona_match': research.persona_match,
        'top_triggers': research.top_triggers,
        'messaging_angles': research.messaging_angles,
    }
    result = _json_completion(f"""You write short, specific cold email sequences.

LEAD:
{_describe_lead(lead)}

RESEARCH:
{json.dumps(context, indent=2)}

Write two independent threads. Thread 1 has 3 emails, thread 2 has 3-4 emails.
Each email is under 120 words and leads with a trigger, not the product.

Respond in JSON:
{{
  "thread_1": {{"subject": "...", "emails": [{{"subject": "...", "body": "..."}}]}},
  "thread_2": {{"subject": "...", "emails": [{{"subject": "...", "body": "..."}}]}}
}}""")

    return {
        'thread_1': result.get('thread_1'),
        'thread_2': result.get('thread_2'),
    }
