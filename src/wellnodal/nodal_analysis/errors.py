"""Exceptions raised by the nodal analysis orchestration"""

from typing import List, Optional

from wellnodal.operating_point.operating_point import CurveValidationError

RETRYABLE_CLIENT_STATUSES = (408, 429)

__all__ = [
    "CurveValidationError",
    "NodalAnalysisError",
    "PreconditionError",
    "UpstreamServiceError",
]


class NodalAnalysisError(Exception):
    """Base class for orchestration errors"""


class PreconditionError(NodalAnalysisError):
    """An analysis step was invoked before the step it depends on succeeded.

    No remote call has been made when this is raised.
    """


class UpstreamServiceError(NodalAnalysisError):
    """A remote calculation service failed.

    Args:
        message: Summary of the failure
        status: HTTP-like status code, None if unknown
        messages: Detail messages reported by the service
        endpoint: Service endpoint that failed
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        messages: Optional[List[str]] = None,
        endpoint: str = "",
    ):
        self.status = status
        self.messages = list(messages or [])
        self.endpoint = endpoint
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Client errors are final, except request timeout and rate limiting"""
        if self.status is None:
            return True
        if self.status in RETRYABLE_CLIENT_STATUSES:
            return True
        return not 400 <= self.status < 500

    def __str__(self) -> str:
        text = super().__str__()
        if self.status is not None:
            text = f"{text} (status {self.status})"
        if self.messages:
            text = f"{text}: {'; '.join(self.messages)}"
        return text
