import os
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


DecisionMode = Literal["direct", "ocr"]
DecisionReason = Literal[
    "forced",
    "ocr_disabled",
    "no_fonts_detected",
    "thin_text_layer",
    "sufficient_text_layer",
]


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    pages: int = Field(gt=0)


class SourceDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    pages: int = Field(gt=0)
    ocr_applied: bool = False


class PageSample(BaseModel):
    page: int = Field(ge=1)
    text: str = ""
    char_count: int = 0
    error: Optional[str] = None


class SampleResult(BaseModel):
    samples: List[PageSample] = Field(default_factory=list)
    min_chars_per_page: int
    thin_pages: int = 0

    @property
    def sampled(self) -> int:
        return len(self.samples)

    @property
    def thin_fraction(self) -> float:
        if self.sampled == 0:
            return 0.0
        return self.thin_pages / self.sampled


class FontReport(BaseModel):
    has_fonts: bool
    font_count: int = 0
    font_lines: int = 0
    method: Literal["structural", "header_offset"] = "structural"


class Decision(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: DecisionMode
    reason: DecisionReason


class PageText(BaseModel):
    """Per-page extraction result; failed pages carry an empty body."""
    page: int = Field(ge=1)
    text: str = ""
    ok: bool = True
    error: Optional[str] = None


class PageRecord(BaseModel):
    page: int = Field(ge=1)
    text: str


class OutputPaths(BaseModel):
    txt: str
    md: Optional[str] = None
    jsonl: str


class ProvenanceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: str = "pdf2llm_meta_v1"
    run_id: Optional[str] = None
    created_at: Optional[str] = None
    status: Literal["complete", "failed"] = "complete"
    error: Optional[str] = None
    input_pdf: str
    pages: Optional[int] = None
    decision: Optional[DecisionMode] = None
    reason: Optional[DecisionReason] = None
    has_fonts: Optional[bool] = None
    font_lines: Optional[int] = None
    font_count: Optional[int] = None
    sampled_pages: Optional[int] = None
    thin_pages_in_sample: Optional[int] = None
    thin_fraction: Optional[float] = None
    min_chars_per_page: int
    thin_fraction_threshold: float
    max_sample_pages: int
    ocr_lang: str
    extraction_engine: str
    source_pdf_used_for_extraction: Optional[str] = None
    ocr_pdf: Optional[str] = None
    empty_pages: List[int] = Field(default_factory=list)
    marker_collisions: int = 0
    markdown_status: Optional[Literal["converted", "fallback_text", "omitted"]] = None
    outputs: Optional[OutputPaths] = None


class OcrOptions(BaseModel):
    skip_text: bool = True
    deskew: bool = True
    clean: bool = True
    optimize: int = Field(default=3, ge=0, le=3)


class ToolPaths(BaseModel):
    pdfinfo: str = "pdfinfo"
    pdffonts: str = "pdffonts"
    pdftotext: str = "pdftotext"
    ocrmypdf: str = "ocrmypdf"
    pandoc: str = "pandoc"


class RunSettings(BaseModel):
    input_pdf: str
    outdir: str = "llm_out"
    lang: str = "eng"
    min_chars: int = Field(default=200, ge=0)
    thin_frac: float = Field(default=0.35, ge=0.0, le=1.0)
    sample_pages: int = Field(default=20, ge=0)
    force_ocr: bool = False
    no_ocr: bool = False
    keep_intermediate: bool = False
    engine: Literal["poppler", "pdfplumber"] = "poppler"
    jobs: int = Field(default=1, ge=1)
    markdown_fallback: bool = False
    progress_bar: bool = True
    run_id: Optional[str] = None
    progress_file: Optional[str] = None
    state_file: Optional[str] = None
    ocr: OcrOptions = Field(default_factory=OcrOptions)
    tools: ToolPaths = Field(default_factory=ToolPaths)

    @field_validator("lang")
    def lang_not_blank(cls, v):
        if not v.strip():
            raise ValueError("lang must not be blank")
        return v.strip()

    @property
    def basename(self) -> str:
        return os.path.splitext(os.path.basename(self.input_pdf))[0]
