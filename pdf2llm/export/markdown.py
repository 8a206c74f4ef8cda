import os
from typing import Optional, Tuple

from pdf2llm.common.errors import MarkdownConversionError
from pdf2llm.common.tools import MarkdownConverter
from pdf2llm.common.utils import ProgressLogger, warn
from pdf2llm.schemas import SourceDocument

MODULE_ID = "markdown_v1"


def _remove(path: str):
    if os.path.exists(path):
        os.remove(path)


def render_markdown(source: SourceDocument, converter: MarkdownConverter, md_path: str, *,
                    marked_text: str, fallback_to_text: bool = False,
                    logger: Optional[ProgressLogger] = None) -> Tuple[Optional[str], str]:
    """
    Best-effort markdown for the chosen source document.

    Returns (path or None, status). A missing converter or a failed conversion is
    a warning only; the .md is then omitted, or filled with the page-marked text
    when `fallback_to_text` is set.
    """
    problem = None
    if not converter.available():
        problem = "markdown converter not installed; skipping .md output"
    else:
        try:
            converter.convert(source.path, md_path)
        except MarkdownConversionError as e:
            problem = f"markdown conversion failed ({e}); continuing without md"

    if problem is None:
        if logger:
            logger.log("markdown", "done", artifact=md_path, message="Markdown converted", module_id=MODULE_ID)
        return md_path, "converted"

    warn(problem)
    _remove(md_path)
    if logger:
        logger.log("markdown", "warning", message=problem, module_id=MODULE_ID)
    if fallback_to_text:
        with open(md_path, "w", encoding="utf-8") as f:
            f.write(marked_text)
        if logger:
            logger.log("markdown", "done", artifact=md_path, message="Wrote text fallback", module_id=MODULE_ID)
        return md_path, "fallback_text"
    if logger:
        logger.log("markdown", "skipped", message="No markdown output", module_id=MODULE_ID)
    return None, "omitted"
