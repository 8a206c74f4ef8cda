"""pdfplumber-backed collaborators; no poppler binaries required."""

import threading

import pdfplumber
from pdfminer.psparser import PSException
from pdfplumber.utils.exceptions import PdfminerException

from pdf2llm.common.errors import PageCountError, PageExtractionError
from pdf2llm.schemas import FontReport

# Raised for files pdfplumber/pdfminer cannot parse.
PDF_READ_ERRORS = (PdfminerException, PSException, OSError)


class PlumberPageCounter:
    def count_pages(self, pdf_path: str) -> int:
        try:
            with pdfplumber.open(pdf_path) as pdf:
                pages = len(pdf.pages)
        except PDF_READ_ERRORS as e:
            raise PageCountError(f"Could not determine page count via pdfplumber for {pdf_path}: {e}") from e
        if pages < 1:
            raise PageCountError(f"pdfplumber reported no pages for {pdf_path}")
        return pages


class PlumberFontProbe:
    """Structural check: does any page carry character objects with a font name."""

    def probe(self, pdf_path: str) -> FontReport:
        fonts = set()
        try:
            with pdfplumber.open(pdf_path) as pdf:
                for page in pdf.pages:
                    for ch in page.chars:
                        name = ch.get("fontname")
                        if name:
                            fonts.add(name)
                    page.close()
        except PDF_READ_ERRORS:
            # Unreadable font inventory is treated like an empty one.
            return FontReport(has_fonts=False, font_count=0, font_lines=0)
        return FontReport(has_fonts=bool(fonts), font_count=len(fonts), font_lines=len(fonts))


class PlumberExtractor:
    """Keeps one open document per path; call close() when the run is over."""

    def __init__(self):
        self._docs = {}
        self._lock = threading.Lock()

    def _open(self, pdf_path: str):
        pdf = self._docs.get(pdf_path)
        if pdf is None:
            pdf = pdfplumber.open(pdf_path)
            self._docs[pdf_path] = pdf
        return pdf

    def extract_page(self, pdf_path: str, page: int) -> str:
        # pdfplumber documents are not safe to share across threads.
        with self._lock:
            try:
                pdf = self._open(pdf_path)
                if page < 1 or page > len(pdf.pages):
                    return ""
                pg = pdf.pages[page - 1]
                text = pg.extract_text(layout=True)
                pg.close()
            except Exception as e:
                raise PageExtractionError(f"page {page}: {e}") from e
        return text or ""

    def close(self):
        with self._lock:
            for pdf in self._docs.values():
                pdf.close()
            self._docs.clear()
