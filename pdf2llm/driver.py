"""
pdf2llm driver: one PDF in, page-addressable artifacts out.

    <outdir>/<base>.txt        page text behind '===== PAGE n =====' markers
    <outdir>/<base>.jsonl      {"page": n, "text": "..."} per page
    <outdir>/<base>.md         markdown of the chosen source (best effort)
    <outdir>/<base>.meta.json  decision + provenance
    <outdir>/<base>.ocr.pdf    OCR'd copy, only when OCR ran
"""

import argparse
import os
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from pdf2llm.build.page_records import split_page_records
from pdf2llm.common.errors import InputNotFoundError, PipelineError
from pdf2llm.common.tools import Toolset, build_toolset
from pdf2llm.common.utils import ProgressLogger, ensure_dir, load_settings, save_jsonl, work_area
from pdf2llm.export.markdown import render_markdown
from pdf2llm.export.provenance import build_provenance, write_provenance
from pdf2llm.extract.ocr_rewrite import resolve_source
from pdf2llm.extract.page_segments import extract_marked_text
from pdf2llm.intake.ocr_decision import check_overrides, decide_ocr
from pdf2llm.intake.sample_pages import sample_pages
from pdf2llm.normalize.normalize_text import normalize_text
from pdf2llm.schemas import Document, OutputPaths, ProvenanceRecord, RunSettings


@dataclass
class OutputLayout:
    outdir: str
    basename: str

    @property
    def txt(self) -> str:
        return os.path.join(self.outdir, f"{self.basename}.txt")

    @property
    def md(self) -> str:
        return os.path.join(self.outdir, f"{self.basename}.md")

    @property
    def jsonl(self) -> str:
        return os.path.join(self.outdir, f"{self.basename}.jsonl")

    @property
    def meta(self) -> str:
        return os.path.join(self.outdir, f"{self.basename}.meta.json")

    @property
    def ocr_pdf(self) -> str:
        return os.path.join(self.outdir, f"{self.basename}.ocr.pdf")

    @property
    def work_dir(self) -> str:
        return os.path.join(self.outdir, f".work_{self.basename}")


@dataclass
class RunResult:
    layout: OutputLayout
    provenance: ProvenanceRecord
    md_path: Optional[str]


def _default_run_id(base: str = "run") -> str:
    """<base>-YYYYMMDD-HHMMSS-<6hex>"""
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"{base}-{ts}-{uuid.uuid4().hex[:6]}"


def run_pipeline(settings: RunSettings, tools: Optional[Toolset] = None,
                 logger: Optional[ProgressLogger] = None) -> RunResult:
    """
    Execute the whole run. Fatal conditions raise PipelineError; whenever the
    output directory exists a failed meta.json is written before re-raising, so a
    stale record from an earlier run never claims success.

    With `tools` omitted the collaborators are resolved here (and closed at the end).
    """
    logger = logger or ProgressLogger(run_id=settings.run_id)
    layout = OutputLayout(settings.outdir, settings.basename)
    owned = tools is None
    state: Dict[str, Any] = {}
    try:
        # Conflicting flags and a missing input are reported before any tool lookup.
        check_overrides(settings.force_ocr, settings.no_ocr)
        if not os.path.isfile(settings.input_pdf):
            raise InputNotFoundError(f"File not found: {settings.input_pdf}")
        if owned:
            tools = build_toolset(settings)
        ensure_dir(layout.outdir)
        with work_area(layout.work_dir, keep=settings.keep_intermediate) as work_dir:
            return _run_stages(settings, tools, logger, layout, work_dir, state)
    except PipelineError as e:
        if os.path.isdir(layout.outdir):
            engine = tools.engine if tools is not None else settings.engine
            record = build_provenance(settings, engine=engine, error=str(e), **state)
            write_provenance(layout.meta, record)
        logger.log("provenance", "failed", message=(str(e).splitlines() or [type(e).__name__])[0], artifact=layout.meta)
        raise
    finally:
        if owned and tools is not None:
            tools.close()


def _run_stages(settings: RunSettings, tools: Toolset, logger: ProgressLogger, layout: OutputLayout,
                work_dir: str, state: Dict[str, Any]) -> RunResult:
    # `state` collects finished stage outputs for the failure record.
    logger.log("probe", "running", message=f"Inspecting {settings.input_pdf}")
    input_path = os.path.abspath(settings.input_pdf)
    doc = Document(path=input_path, pages=tools.page_counter.count_pages(input_path))
    state["doc"] = doc
    fonts = tools.font_probe.probe(doc.path)
    state["fonts"] = fonts
    logger.log("probe", "done", message=f"{doc.pages} pages, {fonts.font_count} fonts",
               extra={"pages": doc.pages, "has_fonts": fonts.has_fonts, "font_method": fonts.method})

    sample = sample_pages(doc, tools.extractor, max_pages=settings.sample_pages,
                          min_chars_per_page=settings.min_chars, work_dir=work_dir, logger=logger)
    state["sample"] = sample

    decision = decide_ocr(has_fonts=fonts.has_fonts, thin_pages=sample.thin_pages, sampled=sample.sampled,
                          thin_fraction_threshold=settings.thin_frac,
                          force_ocr=settings.force_ocr, no_ocr=settings.no_ocr)
    state["decision"] = decision
    logger.log("decide", "done", message=f"{decision.mode} ({decision.reason})",
               extra={"thin_fraction": sample.thin_fraction, "threshold": settings.thin_frac})

    source = resolve_source(doc, decision, ocr_engine=tools.ocr_engine, page_counter=tools.page_counter,
                            ocr_pdf=layout.ocr_pdf, lang=settings.lang, logger=logger)
    state["source"] = source

    segmented = extract_marked_text(source, tools.extractor, jobs=settings.jobs,
                                    progress_bar=settings.progress_bar, logger=logger)
    state["empty_pages"] = segmented.empty_pages
    state["marker_collisions"] = segmented.marker_collisions
    with open(os.path.join(work_dir, "pages_concat.txt"), "w", encoding="utf-8") as f:
        f.write(segmented.text)

    text = normalize_text(segmented.text)
    with open(layout.txt, "w", encoding="utf-8") as f:
        f.write(text)
    logger.log("normalize", "done", artifact=layout.txt, message="Wrote page-marked text")

    records = split_page_records(text, doc.pages)
    save_jsonl(layout.jsonl, [r.model_dump() for r in records])
    logger.log("records", "done", current=len(records), total=doc.pages, artifact=layout.jsonl,
               message=f"Wrote {len(records)} page records")

    md_path, md_status = render_markdown(source, tools.markdown, layout.md, marked_text=text,
                                         fallback_to_text=settings.markdown_fallback, logger=logger)

    outputs = OutputPaths(txt=layout.txt, md=md_path, jsonl=layout.jsonl)
    record = build_provenance(settings, engine=tools.engine, outputs=outputs, markdown_status=md_status, **state)
    write_provenance(layout.meta, record)
    logger.log("provenance", "done", artifact=layout.meta, message="Wrote metadata")
    return RunResult(layout=layout, provenance=record, md_path=md_path)


def _deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf2llm",
        description="Detect whether a PDF needs OCR, then write page-marked TXT, per-page JSONL, "
                    "Markdown and a metadata record for citation-grounded retrieval.",
    )
    parser.add_argument("input_pdf", nargs="+", metavar="input.pdf", help="Input PDF (exactly one)")
    parser.add_argument("-o", "--outdir", help="Output directory (default: llm_out)")
    parser.add_argument("-l", "--lang", help="OCR language(s) for ocrmypdf (default: eng)")
    parser.add_argument("--min-chars", dest="min_chars", type=int,
                        help="Minimum chars per page before considered thin (default: 200)")
    parser.add_argument("--thin-frac", dest="thin_frac", type=float,
                        help="Fraction of thin pages that triggers OCR, 0..1 (default: 0.35)")
    parser.add_argument("--sample-pages", dest="sample_pages", type=int,
                        help="Max pages to sample for the OCR decision (default: 20)")
    parser.add_argument("--force-ocr", dest="force_ocr", action="store_true", default=None, help="Always run OCR")
    parser.add_argument("--no-ocr", dest="no_ocr", action="store_true", default=None,
                        help="Never run OCR (extract directly)")
    parser.add_argument("--keep-intermediate", dest="keep_intermediate", action="store_true", default=None,
                        help="Keep intermediate files (sampled page text, raw concatenation)")
    parser.add_argument("--settings", help="Optional settings YAML; CLI flags override it")
    parser.add_argument("--engine", choices=["poppler", "pdfplumber"],
                        help="Backend for page count, font probe and page text (default: poppler)")
    parser.add_argument("--jobs", type=int, help="Parallel page extraction workers (default: 1)")
    parser.add_argument("--markdown-fallback", dest="markdown_fallback", action="store_true", default=None,
                        help="Write the page-marked text as .md when markdown conversion is unavailable")
    parser.add_argument("--no-progress-bar", dest="progress_bar", action="store_false", default=None,
                        help="Disable the per-page progress bar")
    parser.add_argument("--progress-file", dest="progress_file", help="Path to pipeline_events.jsonl")
    parser.add_argument("--state-file", dest="state_file", help="Path to pipeline_state.json")
    parser.add_argument("--run-id", dest="run_id", help="Run identifier for logging")
    return parser


def settings_from_args(args: argparse.Namespace) -> RunSettings:
    data: Dict[str, Any] = {}
    if args.settings:
        if not os.path.exists(args.settings):
            raise InputNotFoundError(f"Settings file not found: {args.settings}")
        data = _deep_merge(data, load_settings(args.settings))
    overrides = {k: v for k, v in vars(args).items() if k not in {"settings", "input_pdf"} and v is not None}
    data = _deep_merge(data, overrides)
    data["input_pdf"] = args.input_pdf[0]
    if not data.get("run_id"):
        data["run_id"] = _default_run_id("pdf2llm")
    return RunSettings(**data)


def _print_outputs(result: RunResult):
    layout = result.layout
    print("Done.")
    print(f"TXT:   {layout.txt}")
    print(f"MD:    {result.md_path or '(omitted)'}")
    print(f"JSONL: {layout.jsonl}")
    print(f"META:  {layout.meta}")
    if result.provenance.decision == "ocr":
        print(f"OCR PDF: {layout.ocr_pdf}")


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        parser.print_help(sys.stderr)
        raise SystemExit(1)
    args = parser.parse_args(argv)
    if len(args.input_pdf) != 1:
        parser.error("Please provide exactly one input PDF.")

    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        parser.error(f"invalid settings:\n{e}")
    except PipelineError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise SystemExit(1)

    logger = ProgressLogger(state_path=settings.state_file, progress_path=settings.progress_file,
                            run_id=settings.run_id)
    try:
        result = run_pipeline(settings, logger=logger)
    except PipelineError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        raise SystemExit(1)

    _print_outputs(result)


if __name__ == "__main__":
    main()
