"""Page-level PDF operations backed by PyMuPDF."""

from pathlib import Path

import pymupdf

from docprocessor.pdf.exceptions import PdfPageError


def count_pages(pdf_path: Path) -> int:
    try:
        with pymupdf.open(pdf_path) as doc:  # type: ignore[no-untyped-call]
            return int(doc.page_count)
    except Exception as exc:
        raise PdfPageError(f"Cannot open {pdf_path.name}: {exc}") from exc


def split_pages(pdf_path: Path, target_dir: Path) -> list[Path]:
    """Write one single-page PDF per page as ``page-0001.pdf``, ``page-0002.pdf``, ...

    Returns the written paths in page order (page numbers start at 1).
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    try:
        with pymupdf.open(pdf_path) as doc:  # type: ignore[no-untyped-call]
            for index in range(doc.page_count):
                page_path = target_dir / f"{page_stem(index + 1)}.pdf"
                with pymupdf.open() as single:  # type: ignore[no-untyped-call]
                    single.insert_pdf(doc, from_page=index, to_page=index)
                    single.save(page_path)
                paths.append(page_path)
    except Exception as exc:
        raise PdfPageError(f"Cannot split {pdf_path.name}: {exc}") from exc
    return paths


def render_page_png(page_pdf: bytes, dpi: int) -> bytes:
    """Rasterize the first page of ``page_pdf`` to PNG bytes."""
    try:
        with pymupdf.open(stream=page_pdf, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
            pixmap = doc[0].get_pixmap(dpi=dpi)
            return bytes(pixmap.tobytes("png"))
    except Exception as exc:
        raise PdfPageError(f"Cannot render page: {exc}") from exc


def page_stem(page: int) -> str:
    return f"page-{page:04d}"
