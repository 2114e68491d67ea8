import io

import pytesseract
from PIL import Image

from docprocessor.ocr.base import BaseOcrEngine
from docprocessor.ocr.exceptions import OcrError


class TesseractAdapter(BaseOcrEngine):
    """OCR via the Tesseract binary (pytesseract wrapper)."""

    def __init__(self, config: str = "--psm 3") -> None:
        self._config = config

    def recognize(self, png_bytes: bytes, language: str) -> str:
        try:
            with Image.open(io.BytesIO(png_bytes)) as image:
                text = pytesseract.image_to_string(
                    image.convert("RGB"), lang=language, config=self._config
                )
        except Exception as exc:
            raise OcrError(f"tesseract recognition failed: {exc}") from exc
        return str(text).strip()
