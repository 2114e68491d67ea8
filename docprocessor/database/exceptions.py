class StoreError(Exception):
    """Base exception for store access errors."""


class StoreMappingError(StoreError):
    """Raised when a row is missing a required column or has the wrong type."""


class DocumentNotFoundError(StoreError):
    """Raised when a referenced row does not exist."""
