from typing import Optional

from pdf2llm.common.errors import OcrFailedError, PageCountError, PageCountMismatchError
from pdf2llm.common.tools import OcrEngine, PageCounter
from pdf2llm.common.utils import ProgressLogger
from pdf2llm.schemas import Decision, Document, SourceDocument

MODULE_ID = "ocr_rewrite_v1"


def resolve_source(doc: Document, decision: Decision, *, ocr_engine: OcrEngine, page_counter: PageCounter,
                   ocr_pdf: str, lang: str, logger: Optional[ProgressLogger] = None) -> SourceDocument:
    """
    Pick the document every later stage reads from.

    Direct decisions read the original. OCR decisions rewrite it to `ocr_pdf`
    (existing text kept, only text-less pages recognised) and require the
    rewritten file to have the same page count; any OCR failure propagates.
    """
    if decision.mode != "ocr":
        if logger:
            logger.log("ocr", "skipped", message=f"direct extraction ({decision.reason})", module_id=MODULE_ID)
        return SourceDocument(path=doc.path, pages=doc.pages, ocr_applied=False)

    if logger:
        logger.log("ocr", "running", current=0, total=doc.pages,
                   message=f"OCR ({decision.reason}) -> {ocr_pdf}", artifact=ocr_pdf, module_id=MODULE_ID)
    try:
        try:
            ocr_engine.rewrite(doc.path, ocr_pdf, lang)
        except OSError as e:
            raise OcrFailedError(f"OCR could not be run for {doc.path}: {e}") from e
    except Exception as e:
        if logger:
            logger.log("ocr", "failed", message=str(e).splitlines()[0] if str(e) else type(e).__name__,
                       artifact=ocr_pdf, module_id=MODULE_ID)
        raise

    try:
        pages = page_counter.count_pages(ocr_pdf)
    except PageCountError as e:
        raise PageCountMismatchError(f"OCR output {ocr_pdf} is unreadable: {e}") from e
    if pages != doc.pages:
        raise PageCountMismatchError(
            f"OCR output has {pages} pages but {doc.path} has {doc.pages}; page citations would drift"
        )
    if logger:
        logger.log("ocr", "done", current=pages, total=pages, message="OCR complete",
                   artifact=ocr_pdf, module_id=MODULE_ID)
    return SourceDocument(path=ocr_pdf, pages=pages, ocr_applied=True)
