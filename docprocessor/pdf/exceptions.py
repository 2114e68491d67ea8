class PdfExtractionError(Exception):
    """Raised when text cannot be extracted from a PDF."""


class PdfPageError(PdfExtractionError):
    """Raised when a PDF cannot be opened, split or rendered."""
