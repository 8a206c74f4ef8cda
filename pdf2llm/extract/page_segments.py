import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tqdm import tqdm

from pdf2llm.common.tools import PageExtractor
from pdf2llm.common.utils import ProgressLogger
from pdf2llm.schemas import PageText, SourceDocument

MODULE_ID = "page_segments_v1"

PAGE_MARKER = "===== PAGE {page} ====="
PAGE_MARKER_RE = re.compile(r"^===== PAGE (\d+) =====[ \t]*$", re.MULTILINE)
_CR_EOL_RE = re.compile(r"\r$", re.MULTILINE)


def page_marker(page: int) -> str:
    return PAGE_MARKER.format(page=page)


def neutralize_markers(text: str):
    """Indent body lines that look like page markers so they can never split a page."""
    return PAGE_MARKER_RE.subn(lambda m: " " + m.group(0), text)


@dataclass
class SegmentedText:
    pages: List[PageText]
    text: str
    marker_collisions: int = 0
    empty_pages: List[int] = field(default_factory=list)


def _extract_one(extractor: PageExtractor, pdf_path: str, page: int) -> PageText:
    try:
        raw = extractor.extract_page(pdf_path, page)
    except Exception as e:
        return PageText(page=page, text="", ok=False, error=str(e) or type(e).__name__)
    return PageText(page=page, text=_CR_EOL_RE.sub("", raw or ""))


def extract_pages(source: SourceDocument, extractor: PageExtractor, *, jobs: int = 1,
                  progress_bar: bool = False) -> List[PageText]:
    """
    Extract every page of `source`, one call per page, in page order.

    With jobs > 1 pages are fetched on a bounded thread pool and put back in
    order afterwards. A failed page comes back as PageText(ok=False, text="").
    """
    total = source.pages
    bar = tqdm(total=total, desc="Extract pages", unit="page", disable=not progress_bar)
    results: Dict[int, PageText] = {}
    try:
        if jobs <= 1:
            for page in range(1, total + 1):
                results[page] = _extract_one(extractor, source.path, page)
                bar.update(1)
        else:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                futures = {pool.submit(_extract_one, extractor, source.path, page): page
                           for page in range(1, total + 1)}
                for fut in as_completed(futures):
                    results[futures[fut]] = fut.result()
                    bar.update(1)
    finally:
        bar.close()
    return [results[page] for page in range(1, total + 1)]


def render_marked_text(pages: List[PageText]):
    """Join pages as `marker / body / blank line` blocks. Returns (text, marker_collisions)."""
    chunks = []
    collisions = 0
    for pt in pages:
        body, hits = neutralize_markers(pt.text)
        collisions += hits
        if body and not body.endswith("\n"):
            body += "\n"
        chunks.append(f"{page_marker(pt.page)}\n{body}\n")
    return "".join(chunks), collisions


def extract_marked_text(source: SourceDocument, extractor: PageExtractor, *, jobs: int = 1,
                        progress_bar: bool = False, logger: Optional[ProgressLogger] = None) -> SegmentedText:
    if logger:
        logger.log("extract", "running", current=0, total=source.pages,
                   message=f"Extracting {source.pages} pages from {source.path}", module_id=MODULE_ID)
    pages = extract_pages(source, extractor, jobs=jobs, progress_bar=progress_bar)
    text, collisions = render_marked_text(pages)
    empty = [pt.page for pt in pages if not pt.ok]
    if logger:
        for pt in pages:
            if not pt.ok:
                logger.log("extract", "warning", message=f"page {pt.page} extraction failed: {pt.error}",
                           module_id=MODULE_ID)
        logger.log("extract", "done", current=source.pages, total=source.pages,
                   message=f"Extracted {source.pages} pages ({len(empty)} failed)", module_id=MODULE_ID,
                   extra={"failed_pages": empty, "marker_collisions": collisions})
    return SegmentedText(pages=pages, text=text, marker_collisions=collisions, empty_pages=empty)
