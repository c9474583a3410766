"""Exception types for the prompt hub storage and sync layers."""


class PromptHubError(Exception):
    """Base class for all prompt hub errors."""
    pass


class DatasetValidationError(PromptHubError):
    """
    Raised when a dataset, backup or import file fails the structural check.

    The operation that hit it is aborted and nothing is persisted.
    """
    pass


class BackupError(PromptHubError):
    """Raised when a backup file cannot be found, read or written."""
    pass


class TransportError(PromptHubError):
    """
    Raised for network level failures and unexpected HTTP statuses.

    Carries the HTTP status when one was received.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(PromptHubError):
    """
    Raised when the remote file does not exist (HTTP 404).

    This is the "first sync" signal, not a failure.
    """
    pass


class ConfigurationError(PromptHubError):
    """Raised when cloud sync is used without a stored configuration."""
    pass


class ConflictAbort(PromptHubError):
    """Raised when a merge input fails validation; no partial merge is applied."""
    pass
