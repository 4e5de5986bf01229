"""
Error taxonomy for the earnings pipeline.

Per-item errors (ProviderUnavailable, VideoNotFound, LedgerConflict,
InsufficientBalance, RecordNotFound) are caught by the engines and
aggregated into batch/bulk results. Run-level errors (PersistenceUnavailable,
InvalidConfiguration) propagate to the caller or scheduler.
"""


class EverNetError(Exception):
    """Base error. `message` is safe to show to an admin."""

    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ProviderUnavailable(EverNetError):
    """Network or provider-side failure. Retried on the next scheduled run."""

    retryable = True


class VideoNotFound(EverNetError):
    """Provider returned no data for a video id."""

    def __init__(self, video_id: str) -> None:
        self.video_id = video_id
        super().__init__("video not found on provider")


class LedgerConflict(EverNetError):
    """Compare-and-swap precondition failed."""


class InsufficientBalance(EverNetError):
    """A guarded debit would take a balance below zero."""


class RecordNotFound(EverNetError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class PersistenceUnavailable(EverNetError):
    """The ledger database cannot be reached. Fatal for the current run."""

    retryable = True


class InvalidConfiguration(EverNetError):
    """Rate configuration missing or malformed. Fatal before any work begins."""
