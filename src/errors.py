"""
Provider Errors - Exception taxonomy for resource operations.

Every failure a resource plugin can report is one of these exceptions. The
provider turns them into diagnostics for the host; none of them is retried
here.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for errors reported back to the host as diagnostics."""

    def __init__(self, summary: str, detail: str = ""):
        self.summary = summary
        self.detail = detail
        super().__init__(f"{summary}: {detail}" if detail else summary)


class RequestError(ProviderError):
    """A remote call failed (transport error or non-2xx response)."""

    def __init__(
        self,
        summary: str,
        detail: str = "",
        status: Optional[int] = None,
    ):
        self.status = status
        super().__init__(summary, detail)


class NotFoundError(RequestError):
    """The remote object no longer exists."""

    def __init__(self, summary: str, detail: str = ""):
        super().__init__(summary, detail, status=404)


class SerializationError(ProviderError):
    """Desired state could not be encoded into the wire payload."""


class ConvergenceTimeoutError(ProviderError):
    """The remote system accepted a write but never reflected it in time."""


class UnsupportedOperationError(ProviderError):
    """The remote API cannot express the requested change in place."""


class ImportFormatError(ProviderError):
    """An import identifier does not have the expected shape."""


class ValidationError(ProviderError):
    """Resource attributes do not satisfy the resource schema."""
