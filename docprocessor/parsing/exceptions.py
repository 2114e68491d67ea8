class RemoteParseError(Exception):
    """Raised when the remote parse service rejects a job or answers unexpectedly."""


class RemoteParseTimeoutError(RemoteParseError):
    """Raised when a parse job does not reach a terminal status in time."""
