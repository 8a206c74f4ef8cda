from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from pdf2llm.common.errors import MarkdownConversionError, OcrFailedError, PageCountError, PageExtractionError
from pdf2llm.common.tools import Toolset
from pdf2llm.schemas import FontReport, RunSettings

LONG_PAGE = "word " * 60  # 240 non-whitespace chars, above the default 200 threshold


class FakeBackend:
    """In-memory stand-in for pdfinfo / pdffonts / pdftotext, keyed by file path."""

    def __init__(self):
        self.docs: Dict[str, List[str]] = {}
        self.fonts: Dict[str, bool] = {}
        self.failing: Dict[str, set] = {}
        self.calls: List[tuple] = []

    def add(self, path, pages: Iterable[str], has_fonts: bool = True, failing: Iterable[int] = ()):
        self.docs[str(path)] = list(pages)
        self.fonts[str(path)] = has_fonts
        self.failing[str(path)] = set(failing)

    def count_pages(self, pdf_path: str) -> int:
        if pdf_path not in self.docs:
            raise PageCountError(f"Could not determine page count for {pdf_path}")
        return len(self.docs[pdf_path])

    def probe(self, pdf_path: str) -> FontReport:
        has = self.fonts.get(pdf_path, False)
        return FontReport(has_fonts=has, font_count=1 if has else 0, font_lines=3 if has else 2)

    def extract_page(self, pdf_path: str, page: int) -> str:
        self.calls.append((pdf_path, page))
        if page in self.failing.get(pdf_path, set()):
            raise PageExtractionError(f"page {page}: corrupt page")
        pages = self.docs[pdf_path]
        if page < 1 or page > len(pages):
            return ""
        return pages[page - 1]


class FakeOcrEngine:
    def __init__(self, backend: FakeBackend, pages: Optional[List[str]] = None, fail: bool = False):
        self.backend = backend
        self.pages = pages
        self.fail = fail
        self.calls: List[tuple] = []

    def rewrite(self, src_pdf: str, dst_pdf: str, lang: str) -> None:
        self.calls.append((src_pdf, dst_pdf, lang))
        if self.fail:
            raise OcrFailedError("ocrmypdf failed with code 2.")
        texts = self.pages
        if texts is None:
            texts = [t if t.strip() else f"recognised text {i}" for i, t in enumerate(self.backend.docs[src_pdf], 1)]
        Path(dst_pdf).write_bytes(b"%PDF-1.4 fake ocr")
        self.backend.add(dst_pdf, texts)


class FakeMarkdown:
    def __init__(self, installed: bool = True, fail: bool = False):
        self.installed = installed
        self.fail = fail
        self.calls: List[tuple] = []

    def available(self) -> bool:
        return self.installed

    def convert(self, src_pdf: str, dst_md: str) -> None:
        self.calls.append((src_pdf, dst_md))
        if self.fail:
            raise MarkdownConversionError("pandoc exited 1: unknown input format")
        Path(dst_md).write_text("# converted\n", encoding="utf-8")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_pdf(tmp_path, backend):
    def _make(name: str = "report.pdf", pages: Iterable[str] = (LONG_PAGE,), **kwargs) -> str:
        path = tmp_path / name
        path.write_bytes(b"%PDF-1.4 fake")
        backend.add(str(path), pages, **kwargs)
        return str(path)
    return _make


@pytest.fixture
def make_tools(backend):
    def _make(ocr: Optional[FakeOcrEngine] = None, markdown: Optional[FakeMarkdown] = None) -> Toolset:
        return Toolset(
            page_counter=backend,
            font_probe=backend,
            extractor=backend,
            ocr_engine=ocr or FakeOcrEngine(backend),
            markdown=markdown or FakeMarkdown(),
            engine="fake",
        )
    return _make


@pytest.fixture
def make_settings(tmp_path):
    def _make(input_pdf: str, **overrides) -> RunSettings:
        data = {"input_pdf": input_pdf, "outdir": str(tmp_path / "out"), "progress_bar": False, "run_id": "t-run"}
        data.update(overrides)
        return RunSettings(**data)
    return _make
