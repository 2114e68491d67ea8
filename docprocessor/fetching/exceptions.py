class FetchError(Exception):
    """Raised when a source artifact cannot be downloaded or rendered."""
