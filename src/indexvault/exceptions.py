"""Custom exception classes for IndexVault."""


class IndexVaultError(Exception):
    """Base exception for all IndexVault errors."""

    pass


class ConfigError(IndexVaultError):
    """Exception raised for configuration errors."""

    pass


class ClusterQueryError(IndexVaultError):
    """Exception raised when a settings, mapping, alias, search or scroll call fails."""

    pass


class ClusterUnavailableError(ClusterQueryError):
    """Exception raised for transient cluster transport failures (retryable)."""

    def __init__(self, message: str = "Cluster unavailable", status: int | None = None):
        """Initialize cluster unavailable error.

        Args:
            message: Error message
            status: HTTP status reported by the cluster, if any
        """
        self.status = status
        if status:
            message = f"{message} (status {status})"
        super().__init__(message)


class ArchiveError(IndexVaultError):
    """Exception raised for archive session errors."""

    pass


class SessionWriteError(ArchiveError):
    """Exception raised when writing to or closing an archive session fails."""

    pass


class SerializationError(IndexVaultError):
    """Exception raised for payload serialization errors."""

    pass


class SubmissionRejectedError(IndexVaultError):
    """Exception raised when an export job cannot be accepted."""

    def __init__(self, reason: str):
        """Initialize submission rejected error.

        Args:
            reason: Human-readable rejection reason
        """
        self.reason = reason
        super().__init__(reason)


class RegistryError(IndexVaultError):
    """Exception raised when the job registry cannot record or drop a job."""

    pass

