import io

import pdfplumber

from docprocessor.pdf.base import BasePdfExtractor
from docprocessor.pdf.exceptions import PdfExtractionError


class PdfPlumberAdapter(BasePdfExtractor):
    """Extracts text from PDF using pdfplumber's layout-aware text extraction."""

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [page.extract_text(layout=False) or "" for page in pdf.pages]
            return "\n\n".join(p.strip() for p in pages if p.strip())
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber extraction failed: {exc}") from exc
