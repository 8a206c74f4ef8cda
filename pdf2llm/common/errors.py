class PipelineError(Exception):
    """Fatal condition: the run aborts with a non-zero exit status."""


class MissingToolError(PipelineError):
    pass


class InputNotFoundError(PipelineError):
    pass


class PageCountError(PipelineError):
    pass


class ConflictingOverrideError(PipelineError):
    pass


class OcrUnavailableError(PipelineError):
    pass


class OcrFailedError(PipelineError):
    pass


class PageCountMismatchError(PipelineError):
    """OCR output does not have the same number of pages as the input."""


class PageConsistencyError(PipelineError):
    """Split records do not cover pages 1..N exactly once, in order."""


class PageExtractionError(Exception):
    """A single page could not be extracted; callers record it and move on."""


class MarkdownConversionError(Exception):
    """Best-effort markdown conversion failed; the run continues without .md output."""
