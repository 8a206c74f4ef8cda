import os
import re
from typing import Optional

from pdf2llm.common.tools import PageExtractor
from pdf2llm.common.utils import ensure_dir, ProgressLogger
from pdf2llm.schemas import Document, PageSample, SampleResult

MODULE_ID = "sample_pages_v1"
_WS_RE = re.compile(r"\s+")


def count_text_chars(text: str) -> int:
    """Meaningful characters on a page: everything except whitespace."""
    return len(_WS_RE.sub("", text or ""))


def sample_pages(doc: Document, extractor: PageExtractor, *, max_pages: int, min_chars_per_page: int,
                 work_dir: Optional[str] = None, logger: Optional[ProgressLogger] = None) -> SampleResult:
    """
    Extract pages 1..min(max_pages, doc.pages) one at a time and count thin pages.

    A page whose extraction raises is kept as an empty sample (char_count 0, so it
    counts as thin) and sampling moves on to the next page.
    """
    limit = max(0, min(max_pages, doc.pages))
    sample_dir = os.path.join(work_dir, "sample_pages") if work_dir else None
    if sample_dir:
        ensure_dir(sample_dir)

    samples = []
    thin = 0
    for page in range(1, limit + 1):
        error = None
        try:
            text = extractor.extract_page(doc.path, page)
        except Exception as e:
            text = ""
            error = str(e) or type(e).__name__
        if sample_dir:
            with open(os.path.join(sample_dir, f"page_{page}.txt"), "w", encoding="utf-8") as f:
                f.write(text)
        chars = count_text_chars(text)
        if chars < min_chars_per_page:
            thin += 1
        samples.append(PageSample(page=page, text=text, char_count=chars, error=error))
        if logger:
            logger.log("sample", "running", current=page, total=limit,
                       message=f"Sampled page {page} ({chars} chars)", module_id=MODULE_ID)

    result = SampleResult(samples=samples, min_chars_per_page=min_chars_per_page, thin_pages=thin)
    if logger:
        logger.log("sample", "done", current=limit, total=limit,
                   message=f"{thin}/{limit} thin pages", module_id=MODULE_ID,
                   extra={"thin_pages": thin, "sampled": limit})
    return result
