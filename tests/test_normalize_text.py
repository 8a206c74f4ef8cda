import pytest

from pdf2llm.normalize.normalize_text import normalize_text


def test_strips_trailing_spaces_and_tabs():
    assert normalize_text("alpha   \nbeta\t \ngamma\n") == "alpha\nbeta\ngamma\n"


def test_collapses_long_newline_runs_to_two_blank_lines():
    assert normalize_text("a\n\n\n\n\n\nb") == "a\n\n\nb"
    assert normalize_text("a\n\n\nb") == "a\n\n\nb"


def test_whitespace_only_lines_collapse_too():
    assert normalize_text("a\n  \n\t\n   \n\nb") == "a\n\n\nb"


def test_markers_and_page_order_untouched():
    text = "===== PAGE 1 =====\n  indented  \n\n\n\n\n===== PAGE 2 =====\nsecond\n\n"
    out = normalize_text(text)
    assert out == "===== PAGE 1 =====\n  indented\n\n\n===== PAGE 2 =====\nsecond\n\n"
    assert out.index("PAGE 1") < out.index("PAGE 2")


@pytest.mark.parametrize("text", [
    "",
    "plain",
    "a \n \n \n \n \nb  ",
    "x\t\n\n\n\n\n\n\n\t\ny \r\n",
    "===== PAGE 1 =====\n\n\n\n\n\n===== PAGE 2 =====\n   \n",
])
def test_idempotent(text):
    once = normalize_text(text)
    assert normalize_text(once) == once
