from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import CycleSummary


class QueueError(Exception):
    """Base class for every error raised by quelea."""


class TransportError(QueueError):
    """A broker call failed (network, throttling, auth)."""

    def __init__(self, message: str, retryable: bool = False, code: Optional[str] = None):
        super().__init__(message)
        self.retryable = retryable
        self.code = code


class PayloadTooLarge(QueueError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Payload size {size} exceeds limit {limit}")
        self.size = size
        self.limit = limit


class MalformedPayload(QueueError):
    """A received body could not be decoded into a mapping."""


class ProcessingError(QueueError):
    """Raised by handlers to report a business failure for one item."""


class LeaseExpired(QueueError):
    def __init__(self, lease_token: str, message: Optional[str] = None):
        super().__init__(message or f"Lease {lease_token} is no longer valid")
        self.lease_token = lease_token


class CycleAborted(QueueError):
    """The lease call failed; the cycle ended before processing anything."""

    def __init__(self, summary: "CycleSummary", cause: Exception):
        super().__init__(f"Cycle {summary.cycle_id} aborted: {cause}")
        self.summary = summary
        self.cause = cause
