"""
External collaborators for the pipeline.

The core stages only see the protocols below; the poppler/ocrmypdf/pandoc
classes shell out to the real binaries, and `pdf2llm.common.plumber` offers
pdfplumber-backed alternatives for the page count, font probe and page text.
"""

import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Protocol

from pdf2llm.common.errors import (
    MarkdownConversionError,
    MissingToolError,
    OcrFailedError,
    OcrUnavailableError,
    PageCountError,
    PageExtractionError,
)
from pdf2llm.schemas import FontReport, OcrOptions, RunSettings


class PageCounter(Protocol):
    def count_pages(self, pdf_path: str) -> int: ...


class FontProbe(Protocol):
    def probe(self, pdf_path: str) -> FontReport: ...


class PageExtractor(Protocol):
    def extract_page(self, pdf_path: str, page: int) -> str: ...


class OcrEngine(Protocol):
    def rewrite(self, src_pdf: str, dst_pdf: str, lang: str) -> None: ...


class MarkdownConverter(Protocol):
    def available(self) -> bool: ...

    def convert(self, src_pdf: str, dst_md: str) -> None: ...


def require_tool(binary: str, purpose: str) -> str:
    path = shutil.which(binary)
    if not path:
        raise MissingToolError(f"missing required command: {binary} ({purpose})")
    return path


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join((text or "").strip().splitlines()[-lines:])


# pdffonts prints a column header plus a dashed rule even when the document has no fonts.
PDFFONTS_HEADER_LINES = 2
_PDFFONTS_RULE_RE = re.compile(r"^-{3,}(\s+-{3,})+\s*$")
_PDFINFO_PAGES_RE = re.compile(r"^Pages:\s*(\d+)\s*$", re.MULTILINE)


def parse_pdfinfo_pages(report: str) -> Optional[int]:
    m = _PDFINFO_PAGES_RE.search(report or "")
    if not m:
        return None
    return int(m.group(1))


def parse_pdffonts_report(report: str) -> FontReport:
    """
    Count font rows in a pdffonts table.

    Rows are the non-empty lines after the dashed rule. When no rule is present
    (unexpected format, or the tool printed nothing) the line count minus the
    fixed header height is used instead and the report is flagged `header_offset`.
    """
    lines: List[str] = (report or "").splitlines()
    for idx, line in enumerate(lines):
        if _PDFFONTS_RULE_RE.match(line):
            rows = [ln for ln in lines[idx + 1:] if ln.strip()]
            return FontReport(has_fonts=bool(rows), font_count=len(rows),
                              font_lines=len(lines), method="structural")
    count = max(0, len(lines) - PDFFONTS_HEADER_LINES)
    return FontReport(has_fonts=count > 0, font_count=count,
                      font_lines=len(lines), method="header_offset")


class PdfinfoPageCounter:
    def __init__(self, binary: str = "pdfinfo"):
        self.binary = binary

    def count_pages(self, pdf_path: str) -> int:
        try:
            proc = subprocess.run([self.binary, pdf_path], capture_output=True)
        except FileNotFoundError as e:
            raise MissingToolError(f"missing required command: {self.binary}") from e
        except OSError as e:
            raise PageCountError(f"Could not run {self.binary} for {pdf_path}: {e}") from e
        pages = parse_pdfinfo_pages(proc.stdout.decode("utf-8", errors="ignore"))
        if proc.returncode != 0 or pages is None or pages < 1:
            raise PageCountError(
                f"Could not determine page count via {self.binary} for {pdf_path}: "
                f"{_tail(proc.stderr.decode('utf-8', errors='ignore'), 5) or 'no Pages: line'}"
            )
        return pages


class PdffontsProbe:
    def __init__(self, binary: str = "pdffonts"):
        self.binary = binary

    def probe(self, pdf_path: str) -> FontReport:
        try:
            proc = subprocess.run([self.binary, pdf_path], capture_output=True)
        except FileNotFoundError as e:
            raise MissingToolError(f"missing required command: {self.binary}") from e
        except OSError as e:
            raise MissingToolError(f"could not run {self.binary}: {e}") from e
        # A failing pdffonts still leaves us with whatever it printed; an empty report means no fonts.
        return parse_pdffonts_report(proc.stdout.decode("utf-8", errors="ignore"))


class PdftotextExtractor:
    def __init__(self, binary: str = "pdftotext"):
        self.binary = binary

    def extract_page(self, pdf_path: str, page: int) -> str:
        cmd = [self.binary, "-layout", "-nopgbrk", "-f", str(page), "-l", str(page), pdf_path, "-"]
        try:
            proc = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            raise PageExtractionError(f"page {page}: {e}") from e
        if proc.returncode != 0:
            raise PageExtractionError(
                f"page {page}: {self.binary} exited {proc.returncode}: "
                f"{_tail(proc.stderr.decode('utf-8', errors='ignore'), 3)}"
            )
        return proc.stdout.decode("utf-8", errors="ignore")


class OcrmypdfEngine:
    def __init__(self, binary: str = "ocrmypdf", options: Optional[OcrOptions] = None):
        self.binary = binary
        self.options = options or OcrOptions()

    def build_command(self, src_pdf: str, dst_pdf: str, lang: str) -> List[str]:
        cmd = [self.binary]
        if self.options.skip_text:
            cmd.append("--skip-text")
        if self.options.deskew:
            cmd.append("--deskew")
        if self.options.clean:
            cmd.append("--clean")
        cmd.extend(["--optimize", str(self.options.optimize), "-l", lang, src_pdf, dst_pdf])
        return cmd

    def rewrite(self, src_pdf: str, dst_pdf: str, lang: str) -> None:
        if not shutil.which(self.binary):
            raise OcrUnavailableError(
                f"OCR requested/needed but {self.binary} is not installed. "
                "Install ocrmypdf, or rerun with --no-ocr to force direct extraction."
            )
        cmd = self.build_command(src_pdf, dst_pdf, lang)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise OcrFailedError(f"{self.binary} could not be run: {e}\nCommand: {' '.join(cmd)}") from e
        if proc.returncode != 0:
            raise OcrFailedError(
                f"{self.binary} failed with code {proc.returncode}.\n"
                f"Command: {' '.join(cmd)}\n"
                f"STDERR:\n{_tail(proc.stderr)}"
            )


class PandocConverter:
    def __init__(self, binary: str = "pandoc"):
        self.binary = binary

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def convert(self, src_pdf: str, dst_md: str) -> None:
        cmd = [self.binary, src_pdf, "--wrap=none", "-o", dst_md]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise MarkdownConversionError(str(e)) from e
        if proc.returncode != 0:
            raise MarkdownConversionError(
                f"{self.binary} exited {proc.returncode}: {_tail(proc.stderr, 5)}"
            )


@dataclass
class Toolset:
    page_counter: PageCounter
    font_probe: FontProbe
    extractor: PageExtractor
    ocr_engine: OcrEngine
    markdown: MarkdownConverter
    engine: str = "poppler"

    def close(self):
        """Release collaborators that hold open documents (the pdfplumber engine does)."""
        seen = set()
        for part in (self.page_counter, self.font_probe, self.extractor, self.ocr_engine, self.markdown):
            close = getattr(part, "close", None)
            if close is not None and id(part) not in seen:
                seen.add(id(part))
                close()


def build_toolset(settings: RunSettings) -> Toolset:
    """Resolve collaborators for the configured engine, failing fast on missing binaries."""
    tools = settings.tools
    ocr_engine = OcrmypdfEngine(tools.ocrmypdf, settings.ocr)
    markdown = PandocConverter(tools.pandoc)
    if settings.engine == "pdfplumber":
        from pdf2llm.common.plumber import PlumberExtractor, PlumberFontProbe, PlumberPageCounter
        return Toolset(
            page_counter=PlumberPageCounter(),
            font_probe=PlumberFontProbe(),
            extractor=PlumberExtractor(),
            ocr_engine=ocr_engine,
            markdown=markdown,
            engine="pdfplumber",
        )

    require_tool(tools.pdfinfo, "page count")
    require_tool(tools.pdftotext, "page text extraction")
    require_tool(tools.pdffonts, "font inventory")
    return Toolset(
        page_counter=PdfinfoPageCounter(tools.pdfinfo),
        font_probe=PdffontsProbe(tools.pdffonts),
        extractor=PdftotextExtractor(tools.pdftotext),
        ocr_engine=ocr_engine,
        markdown=markdown,
        engine="poppler",
    )
