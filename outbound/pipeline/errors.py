"""
Pipeline error taxonomy.

Every error carries the HTTP status the boundary layer maps it to; the Flask
error handler in outbound/__init__.py turns it into {error, details?}.
"""


class PipelineError(Exception):
    """Base class for errors raised by the orchestrator, stages and store."""
    status_code = 500

    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self):
        body = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        return body


class NotFound(PipelineError):
    """Referenced lead, research record or sequence does not exist. Never retried."""
    status_code = 404


class PreconditionFailed(PipelineError):
    """The request cannot succeed as sent — caller must fix it, not retry it."""
    status_code = 400


class IllegalTransition(PreconditionFailed):
    """A sequence status change that is not a single forward step."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move sequence from '{current}' to '{target}'",
            details={'current': current, 'target': target},
        )


class UpstreamFailure(PipelineError):
    """Event publish, record-store write or external call failed. Safe to retry."""
    status_code = 500
