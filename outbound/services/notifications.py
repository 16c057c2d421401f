"""
Notifications — Slack webhook alerts for stage failures.

Once an event is published the original caller is gone, so a stage that fails
has to be reported out-of-band. Notification failure never blocks the pipeline.
"""
import logging
import requests

from outbound.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def notify_stage_failed(stage, event_name, lead_id, error, will_retry=False):
    """Post a stage failure alert to Slack."""
    if not SLACK_WEBHOOK_URL:
        return

    try:
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"Pipeline stage FAILED — {stage}",
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Event:* {event_name}"},
                    {"type": "mrkdwn", "text": f"*Lead:* {lead_id or 'unknown'}"},
                    {"type": "mrkdwn", "text": f"*Retrying:* {'yes' if will_retry else 'no'}"},
                ]
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Error:* ```{str(error)[:500]}```"}
            },
        ]

        requests.post(SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Stage %s failure notification sent for lead %s", stage, lead_id)

    except Exception:
        logger.error("Failed to send failure notification for lead %s", lead_id, exc_info=True)
