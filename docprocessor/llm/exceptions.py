class LlmError(Exception):
    """Raised when a text-generation or embedding call fails."""


class LlmNetworkError(LlmError):
    """Raised when the provider call fails due to network/infrastructure issues."""


class LlmResponseError(LlmError):
    """Raised when the provider answers with an empty or malformed payload."""
