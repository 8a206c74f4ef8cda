import argparse
import json
from typing import Any, Dict, List, Type
from pydantic import BaseModel, ValidationError

from pdf2llm.common.page_numbers import validate_sequential_page_numbers
from pdf2llm.common.utils import read_jsonl
from pdf2llm.schemas import PageRecord, ProvenanceRecord


SCHEMA_MAP: Dict[str, Type[BaseModel]] = {
    "page_record_v1": PageRecord,
    "pdf2llm_meta_v1": ProvenanceRecord,
}


def validate_rows(schema: str, rows: List[Any]) -> List[str]:
    """Return one message per problem; an empty list means the artifact is valid."""
    model_cls = SCHEMA_MAP[schema]
    errors = []
    objects = []
    for idx, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            errors.append(f"row {idx}: expected a JSON object, got {type(row).__name__}")
            continue
        objects.append(row)
        try:
            model_cls(**row)
        except ValidationError as e:
            errors.append(f"row {idx}: {e}")
        if schema == "page_record_v1":
            keys = sorted(set(row) - {"page", "text"})
            if keys:
                errors.append(f"row {idx}: unexpected fields {keys}")
    if schema == "page_record_v1":
        if not rows:
            errors.append("no page records found")
        ok, missing, unexpected = validate_sequential_page_numbers(objects, field="page")
        if objects and not ok:
            errors.append(f"page sequence broken: missing={missing} unexpected={unexpected}")
    return errors


def main():
    parser = argparse.ArgumentParser(description="Validate a pdf2llm artifact against its schema.")
    parser.add_argument("--schema", required=True, choices=SCHEMA_MAP.keys())
    parser.add_argument("--file", required=True, help="Path to .jsonl page records or .meta.json")
    args = parser.parse_args()

    if args.schema == "pdf2llm_meta_v1":
        with open(args.file, "r", encoding="utf-8") as f:
            rows = [json.load(f)]
    else:
        rows = list(read_jsonl(args.file))

    errors = validate_rows(args.schema, rows)
    for err in errors:
        print(f"[ERROR] {err}")
    if errors:
        print(f"Validation finished with {len(errors)} errors out of {len(rows)} rows.")
        raise SystemExit(1)
    print(f"Validation OK: {len(rows)} rows match {args.schema}")


if __name__ == "__main__":
    main()
