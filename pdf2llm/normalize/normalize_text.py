import re

_TRAILING_WS_RE = re.compile(r"[ \t]+\n")
_BLANK_RUN_RE = re.compile(r"\n{4,}")


def normalize_text(text: str) -> str:
    """
    Drop spaces/tabs before line breaks and squeeze runs of 4+ newlines to 3
    (two blank lines). Page markers and page order are left untouched, and
    normalize_text(normalize_text(t)) == normalize_text(t).
    """
    text = _TRAILING_WS_RE.sub("\n", text)
    return _BLANK_RUN_RE.sub("\n\n\n", text)
