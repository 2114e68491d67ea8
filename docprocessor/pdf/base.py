from abc import ABC, abstractmethod


class BasePdfExtractor(ABC):
    """Contract for structural (non-OCR) text extraction adapters."""

    @abstractmethod
    def extract(self, pdf_bytes: bytes) -> str:
        """Extract the text layer of a (typically single-page) PDF.

        Args:
            pdf_bytes: Raw PDF file content.

        Returns:
            Extracted text, stripped. Empty for scanned pages without a text layer.

        Raises:
            PdfExtractionError: if extraction fails for any reason.
        """
