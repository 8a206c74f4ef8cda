import os
from typing import List, Optional

from pdf2llm.common.utils import save_json, utc_now
from pdf2llm.schemas import (
    Decision,
    Document,
    FontReport,
    OutputPaths,
    ProvenanceRecord,
    RunSettings,
    SampleResult,
    SourceDocument,
)


def _abs(path: Optional[str]) -> Optional[str]:
    return os.path.abspath(path) if path else None


def build_provenance(settings: RunSettings, *, engine: str, doc: Optional[Document] = None,
                     fonts: Optional[FontReport] = None, sample: Optional[SampleResult] = None,
                     decision: Optional[Decision] = None, source: Optional[SourceDocument] = None,
                     outputs: Optional[OutputPaths] = None, empty_pages: Optional[List[int]] = None,
                     marker_collisions: int = 0, markdown_status: Optional[str] = None,
                     error: Optional[str] = None) -> ProvenanceRecord:
    """Assemble the run's metadata record from whatever stages completed; `error` marks it failed."""
    return ProvenanceRecord(
        run_id=settings.run_id,
        created_at=utc_now(),
        status="failed" if error else "complete",
        error=error,
        input_pdf=doc.path if doc else os.path.abspath(settings.input_pdf),
        pages=doc.pages if doc else None,
        decision=decision.mode if decision else None,
        reason=decision.reason if decision else None,
        has_fonts=fonts.has_fonts if fonts else None,
        font_lines=fonts.font_lines if fonts else None,
        font_count=fonts.font_count if fonts else None,
        sampled_pages=sample.sampled if sample else None,
        thin_pages_in_sample=sample.thin_pages if sample else None,
        thin_fraction=sample.thin_fraction if sample else None,
        min_chars_per_page=settings.min_chars,
        thin_fraction_threshold=settings.thin_frac,
        max_sample_pages=settings.sample_pages,
        ocr_lang=settings.lang,
        extraction_engine=engine,
        source_pdf_used_for_extraction=_abs(source.path) if source else None,
        ocr_pdf=_abs(source.path) if source and source.ocr_applied else None,
        empty_pages=list(empty_pages or []),
        marker_collisions=marker_collisions,
        markdown_status=markdown_status,
        outputs=OutputPaths(
            txt=_abs(outputs.txt),
            md=_abs(outputs.md),
            jsonl=_abs(outputs.jsonl),
        ) if outputs else None,
    )


def write_provenance(path: str, record: ProvenanceRecord) -> str:
    save_json(path, record.model_dump())
    return path
