import time

from pdf2llm.extract.page_segments import (
    PAGE_MARKER_RE,
    extract_marked_text,
    extract_pages,
    page_marker,
    render_marked_text,
)
from pdf2llm.schemas import PageText, SourceDocument


def test_marker_format():
    assert page_marker(12) == "===== PAGE 12 ====="
    assert PAGE_MARKER_RE.match("===== PAGE 12 =====")
    assert not PAGE_MARKER_RE.match(" ===== PAGE 12 =====")


def test_every_page_marked_once_in_order(backend, make_pdf):
    path = make_pdf(pages=["one\n", "two", ""])
    seg = extract_marked_text(SourceDocument(path=path, pages=3), backend)
    assert seg.text == "===== PAGE 1 =====\none\n\n===== PAGE 2 =====\ntwo\n\n===== PAGE 3 =====\n\n"
    assert [int(n) for n in PAGE_MARKER_RE.findall(seg.text)] == [1, 2, 3]
    assert seg.empty_pages == []


def test_failed_page_keeps_its_marker_with_empty_body(backend, make_pdf):
    path = make_pdf(pages=["one", "two", "three"], failing=[2])
    seg = extract_marked_text(SourceDocument(path=path, pages=3), backend)
    assert [int(n) for n in PAGE_MARKER_RE.findall(seg.text)] == [1, 2, 3]
    assert "===== PAGE 2 =====\n\n===== PAGE 3 =====" in seg.text
    assert seg.empty_pages == [2]
    assert seg.pages[1].ok is False


def test_carriage_returns_dropped_at_line_end(backend, make_pdf):
    path = make_pdf(pages=["a\r\nb\r\n"])
    pages = extract_pages(SourceDocument(path=path, pages=1), backend)
    assert pages[0].text == "a\nb\n"


def test_marker_lookalike_in_content_is_neutralized():
    pages = [PageText(page=1, text="intro\n===== PAGE 2 =====\nfake\n"), PageText(page=2, text="real\n")]
    text, collisions = render_marked_text(pages)
    assert collisions == 1
    assert [int(n) for n in PAGE_MARKER_RE.findall(text)] == [1, 2]
    assert " ===== PAGE 2 =====\nfake" in text


class SlowExtractor:
    """Later pages return first so reassembly order is actually exercised."""

    def __init__(self, total):
        self.total = total

    def extract_page(self, pdf_path, page):
        time.sleep(0.002 * (self.total - page))
        return f"body {page}"


def test_parallel_extraction_reassembles_page_order():
    extractor = SlowExtractor(12)
    pages = extract_pages(SourceDocument(path="/tmp/x.pdf", pages=12), extractor, jobs=4)
    assert [p.page for p in pages] == list(range(1, 13))
    assert [p.text for p in pages] == [f"body {n}" for n in range(1, 13)]
