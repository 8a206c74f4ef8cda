import json
import sys

import pytest

from pdf2llm import validate_artifact
from pdf2llm.validate_artifact import validate_rows


def test_valid_page_records():
    rows = [{"page": 1, "text": "a"}, {"page": 2, "text": ""}]
    assert validate_rows("page_record_v1", rows) == []


def test_page_records_flag_extra_fields_and_gaps():
    rows = [{"page": 1, "text": "a", "source": "x"}, {"page": 3, "text": "c"}]
    errors = validate_rows("page_record_v1", rows)
    assert any("unexpected fields ['source']" in e for e in errors)
    assert any("missing=[2]" in e for e in errors)


def test_page_record_missing_text_is_invalid():
    errors = validate_rows("page_record_v1", [{"page": 1}])
    assert errors and errors[0].startswith("row 1:")


def test_meta_schema_rejects_unknown_reason():
    row = {
        "input_pdf": "/d/a.pdf",
        "min_chars_per_page": 200,
        "thin_fraction_threshold": 0.35,
        "max_sample_pages": 20,
        "ocr_lang": "eng",
        "extraction_engine": "poppler",
        "decision": "direct",
        "reason": "looked_fine",
    }
    assert validate_rows("pdf2llm_meta_v1", [row])
    row["reason"] = "sufficient_text_layer"
    assert validate_rows("pdf2llm_meta_v1", [row]) == []


def test_cli_reports_failure(tmp_path, monkeypatch, capsys):
    path = tmp_path / "a.jsonl"
    path.write_text(json.dumps({"page": 2, "text": "x"}) + "\n", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["pdf2llm-validate", "--schema", "page_record_v1", "--file", str(path)])
    with pytest.raises(SystemExit) as exc:
        validate_artifact.main()
    assert exc.value.code == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_cli_accepts_driver_output(tmp_path, monkeypatch, capsys, make_pdf, make_tools, make_settings):
    from pdf2llm.driver import run_pipeline

    result = run_pipeline(make_settings(make_pdf(pages=["a", "b", "c"])), make_tools())
    for schema, path in (("page_record_v1", result.layout.jsonl), ("pdf2llm_meta_v1", result.layout.meta)):
        monkeypatch.setattr(sys, "argv", ["pdf2llm-validate", "--schema", schema, "--file", path])
        validate_artifact.main()
    out = capsys.readouterr().out
    assert "Validation OK: 3 rows match page_record_v1" in out
    assert "Validation OK: 1 rows match pdf2llm_meta_v1" in out


def test_empty_page_record_file_is_invalid():
    assert validate_rows("page_record_v1", []) == ["no page records found"]


def test_non_object_rows_are_reported():
    errors = validate_rows("page_record_v1", [{"page": 1, "text": "a"}, 5, ["x"]])
    assert "row 2: expected a JSON object, got int" in errors
    assert "row 3: expected a JSON object, got list" in errors
    assert validate_rows("pdf2llm_meta_v1", ["meta"]) == ["row 1: expected a JSON object, got str"]


def test_cli_rejects_empty_file(tmp_path, monkeypatch, capsys):
    path = tmp_path / "empty.jsonl"
    path.write_text("", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["pdf2llm-validate", "--schema", "page_record_v1", "--file", str(path)])
    with pytest.raises(SystemExit) as exc:
        validate_artifact.main()
    assert exc.value.code == 1
    assert "no page records found" in capsys.readouterr().out
