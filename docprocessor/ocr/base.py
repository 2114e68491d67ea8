from abc import ABC, abstractmethod


class BaseOcrEngine(ABC):
    """Contract for OCR adapters used on scanned pages."""

    @abstractmethod
    def recognize(self, png_bytes: bytes, language: str) -> str:
        """Return the text recognized in a rendered page image.

        Raises:
            OcrError: on any failure.
        """
