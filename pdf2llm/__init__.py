"""PDF to page-addressable LLM text artifacts (txt, jsonl, md, meta.json)."""

__version__ = "0.3.0"
