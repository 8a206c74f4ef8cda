import argparse
from typing import List, Optional

from pdf2llm.common.errors import PageConsistencyError
from pdf2llm.common.page_numbers import validate_sequential_page_numbers
from pdf2llm.common.utils import save_jsonl
from pdf2llm.extract.page_segments import PAGE_MARKER_RE
from pdf2llm.schemas import PageRecord


def split_page_records(text: str, total_pages: Optional[int] = None) -> List[PageRecord]:
    """
    Split marker-delimited text into one record per page.

    Anything before the first marker is dropped. Bodies lose leading/trailing
    newlines only. When `total_pages` is given the markers must number exactly
    1..total_pages in order; otherwise 1..max(page) is required.
    """
    parts = PAGE_MARKER_RE.split(text)
    # parts: [preamble, "1", body1, "2", body2, ...]
    records = []
    it = iter(parts[1:])
    for page, body in zip(it, it):
        records.append(PageRecord(page=int(page), text=body.strip("\n")))

    ok, missing, unexpected = validate_sequential_page_numbers(
        [r.model_dump() for r in records], field="page", expected_total=total_pages
    )
    if not ok or (total_pages is not None and len(records) != total_pages):
        raise PageConsistencyError(
            f"page records do not cover 1..{total_pages if total_pages is not None else '?'}: "
            f"found {len(records)} records, missing={missing[:20]}, unexpected={unexpected[:20]}"
        )
    return records


def main():
    parser = argparse.ArgumentParser(description="Split a page-marked .txt into JSONL page records")
    parser.add_argument("--txt", required=True, help="Text file with '===== PAGE n =====' markers")
    parser.add_argument("--out", required=True, help="Output JSONL path")
    parser.add_argument("--pages", type=int, help="Expected page count (default: highest marker)")
    args = parser.parse_args()

    with open(args.txt, "r", encoding="utf-8", errors="ignore") as f:
        text = f.read()
    try:
        records = split_page_records(text, args.pages)
    except PageConsistencyError as e:
        raise SystemExit(f"ERROR: {e}")
    save_jsonl(args.out, [r.model_dump() for r in records])
    print(f"Wrote {len(records)} page records to {args.out}")


if __name__ == "__main__":
    main()
