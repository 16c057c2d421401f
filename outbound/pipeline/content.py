"""
Email thread shape: {subject, emails: [{subject, body}]}.
"""
from outbound.pipeline.errors import PreconditionFailed


def normalize_thread(value, label='thread'):
    """
    Validate a thread and return a clean copy; None passes through (clears the thread).

    Raises PreconditionFailed on any other shape.
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        raise PreconditionFailed(f"{label} must be an object or null")

    subject = value.get('subject')
    emails = value.get('emails')
    if not isinstance(subject, str):
        raise PreconditionFailed(f"{label}.subject must be a string")
    if not isinstance(emails, list):
        raise PreconditionFailed(f"{label}.emails must be a list")

    cleaned = []
    for i, email in enumerate(emails):
        if not isinstance(email, dict):
            raise PreconditionFailed(f"{label}.emails[{i}] must be an object")
        if not isinstance(email.get('subject', ''), str) or not isinstance(email.get('body'), str):
            raise PreconditionFailed(f"{label}.emails[{i}] needs a string body and subject")
        cleaned.append({'subject': email.get('subject', ''), 'body': email['body']})

    return {'subject': subject, 'emails': cleaned}
