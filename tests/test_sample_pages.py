from pathlib import Path

from pdf2llm.intake.sample_pages import count_text_chars, sample_pages
from pdf2llm.schemas import Document

from conftest import LONG_PAGE


def test_count_text_chars_ignores_all_whitespace():
    assert count_text_chars(" a b\tc\n\nd \r\n") == 4
    assert count_text_chars("") == 0


def test_sample_is_capped_and_in_order(backend, make_pdf):
    path = make_pdf(pages=[LONG_PAGE] * 30)
    result = sample_pages(Document(path=path, pages=30), backend, max_pages=20, min_chars_per_page=200)
    assert result.sampled == 20
    assert [s.page for s in result.samples] == list(range(1, 21))
    assert backend.calls == [(path, p) for p in range(1, 21)]
    assert result.thin_pages == 0


def test_short_document_samples_every_page(backend, make_pdf):
    path = make_pdf(pages=[LONG_PAGE, "tiny"])
    result = sample_pages(Document(path=path, pages=2), backend, max_pages=20, min_chars_per_page=200)
    assert result.sampled == 2
    assert result.thin_pages == 1
    assert result.thin_fraction == 0.5


def test_corrupt_page_is_counted_thin_and_sampling_continues(backend, make_pdf):
    path = make_pdf(pages=[LONG_PAGE] * 5, failing=[2])
    result = sample_pages(Document(path=path, pages=5), backend, max_pages=20, min_chars_per_page=200)
    assert result.sampled == 5
    assert result.thin_pages == 1
    bad = result.samples[1]
    assert bad.page == 2
    assert bad.char_count == 0
    assert "corrupt" in bad.error
    assert all(s.error is None for s in result.samples if s.page != 2)


def test_zero_sample_size(backend, make_pdf):
    path = make_pdf(pages=[LONG_PAGE] * 3)
    result = sample_pages(Document(path=path, pages=3), backend, max_pages=0, min_chars_per_page=200)
    assert result.sampled == 0
    assert result.thin_fraction == 0.0
    assert backend.calls == []


def test_sample_text_written_to_work_dir(tmp_path, backend, make_pdf):
    path = make_pdf(pages=["first page", "second page"])
    work = tmp_path / "work"
    sample_pages(Document(path=path, pages=2), backend, max_pages=5, min_chars_per_page=1, work_dir=str(work))
    assert (work / "sample_pages" / "page_1.txt").read_text(encoding="utf-8") == "first page"
    assert (work / "sample_pages" / "page_2.txt").read_text(encoding="utf-8") == "second page"
    assert not Path(work / "sample_pages" / "page_3.txt").exists()
