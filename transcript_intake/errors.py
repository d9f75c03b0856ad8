from __future__ import annotations


class IntakeError(Exception):
    """Base class for transcript intake failures."""


class ConfigurationError(IntakeError):
    """Required settings are missing; retrying will not help."""


class TransientError(IntakeError):
    """A backend call failed in a way that may succeed on retry.

    ``retry_after`` carries the provider's backoff hint in seconds, if any.
    """

    def __init__(self, message: str, retry_after: float | None = None, status: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after
        self.status = status


class GraphError(IntakeError):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ArtifactStorageError(TransientError):
    pass


class DispatchError(TransientError):
    pass
