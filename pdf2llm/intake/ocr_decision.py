"""
Decide whether a document is extracted directly or OCR'd first.

Rules are checked in a fixed order and the first match wins:

1. --force-ocr together with --no-ocr is a usage error.
2. --force-ocr            -> ocr / forced
3. --no-ocr               -> direct / ocr_disabled
4. no fonts in the file   -> ocr / no_fonts_detected
5. thin fraction > limit  -> ocr / thin_text_layer
   otherwise              -> direct / sufficient_text_layer

The thin-fraction comparison is strict: a document exactly at the threshold
keeps its text layer.
"""

from pdf2llm.common.errors import ConflictingOverrideError
from pdf2llm.schemas import Decision


def check_overrides(force_ocr: bool, no_ocr: bool) -> None:
    if force_ocr and no_ocr:
        raise ConflictingOverrideError("Cannot use --force-ocr and --no-ocr together.")


def thin_fraction(thin_pages: int, sampled: int) -> float:
    if sampled <= 0:
        return 0.0
    return thin_pages / sampled


def decide_ocr(*, has_fonts: bool, thin_pages: int, sampled: int, thin_fraction_threshold: float,
               force_ocr: bool = False, no_ocr: bool = False) -> Decision:
    check_overrides(force_ocr, no_ocr)
    if force_ocr:
        return Decision(mode="ocr", reason="forced")
    if no_ocr:
        return Decision(mode="direct", reason="ocr_disabled")
    if not has_fonts:
        return Decision(mode="ocr", reason="no_fonts_detected")
    if thin_fraction(thin_pages, sampled) > thin_fraction_threshold:
        return Decision(mode="ocr", reason="thin_text_layer")
    return Decision(mode="direct", reason="sufficient_text_layer")
