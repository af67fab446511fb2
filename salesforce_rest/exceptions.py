"""
Salesforce client errors

Every failure surfaces to the caller as one of these. Nothing is retried
or swallowed inside the client.
"""

from typing import Any, Optional


class SalesforceError(Exception):
    """Base class for all client errors"""
    pass


class NotAuthenticatedError(SalesforceError):
    """Raised when an authenticated call is attempted before login"""

    def __init__(self, message: str = "You have not logged in yet."):
        super().__init__(message)


class TransportError(SalesforceError):
    """Raised when the HTTP request could not be completed at all"""
    pass


class ApiError(SalesforceError):
    """
    Salesforce returned a status the client does not treat as success.

    Carries the raw response body and the request diagnostics so callers
    can inspect exactly what was sent and received.
    """

    def __init__(
        self,
        message: str,
        body: str = "",
        diagnostics: Optional[Any] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.body = body
        self.diagnostics = diagnostics
        self.error_code = error_code

    @property
    def status_code(self) -> Optional[int]:
        if self.diagnostics is None:
            return None
        return self.diagnostics.status_code


class AuthError(ApiError):
    """Raised when the OAuth password exchange is rejected"""
    pass


class JobTransitionError(SalesforceError):
    """The server echoed a job state other than the one requested"""

    def __init__(self, job_id: str, requested_state: str, actual_state: Optional[str]):
        verb = "closed" if requested_state == "Closed" else "aborted"
        super().__init__(f"Job {job_id} could not be {verb} (state is {actual_state!r})")
        self.job_id = job_id
        self.requested_state = requested_state
        self.actual_state = actual_state


class InvalidReferenceError(SalesforceError, ValueError):
    """Raised when a job or batch reference cannot be resolved to an id"""
    pass
