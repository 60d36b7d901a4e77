"""Tests for record storage."""

import json

import pytest

from commentary_enricher.models import ParseError, RecordIOError
from commentary_enricher.storage import (
    append_log_entry,
    book_json_dir,
    iter_record_files,
    load_record,
    parse_record_filename,
    record_filename,
    resolve_target,
    save_record,
    serialize_record,
)
from fixtures.records import get_sample_record, sample_record_data, write_record


def test_save_then_load(tmp_path):
    record = get_sample_record()
    path = tmp_path / "amos" / "json" / "amos_01.json"

    save_record(path, record)
    loaded = load_record(path)

    assert loaded == record
    assert path.read_text(encoding="utf-8") == serialize_record(record)


def test_serialization_format(tmp_path):
    record = get_sample_record(title="Ἀμώς")
    path = save_record(tmp_path / "amos_01.json", record)
    text = path.read_text(encoding="utf-8")

    assert text.endswith("}\n")
    assert "Ἀμώς" in text
    assert text.startswith('{\n  "book_name"')


def test_save_leaves_no_temp_files(tmp_path):
    save_record(tmp_path / "amos_01.json", get_sample_record())
    assert [p.name for p in tmp_path.iterdir()] == ["amos_01.json"]


def test_load_malformed_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ParseError):
        load_record(path)


def test_load_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ParseError):
        load_record(path)


def test_load_schema_violation_reports_fields(tmp_path):
    path = tmp_path / "amos_01.json"
    path.write_text(json.dumps({"chapter_number": "01"}), encoding="utf-8")

    with pytest.raises(ParseError) as exc_info:
        load_record(path)
    assert exc_info.value.context["errors"][0]["loc"] == ("book_name",)


def test_load_missing_file(tmp_path):
    with pytest.raises(RecordIOError):
        load_record(tmp_path / "missing.json")


def test_layout_helpers(tmp_path):
    assert book_json_dir(tmp_path, "en", "1 John") == tmp_path / "en" / "1-john" / "json"
    assert record_filename("1 John", 3) == "1_john_03.json"
    assert record_filename("Amos", "00") == "amos_00.json"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Daniel_01.json", ("daniel", 1)),
        ("Daniel-12.mp3", ("daniel", 12)),
        ("1_john_03.json", ("1-john", 3)),
        ("chaptertitles.json", None),
    ],
)
def test_parse_record_filename(name, expected):
    assert parse_record_filename(name) == expected


def test_iter_and_resolve(content_root):
    first = write_record(content_root, sample_record_data(chapter_number="02"))
    second = write_record(content_root, sample_record_data(book_name="Hosea"))

    assert list(iter_record_files(content_root, "en")) == sorted([first, second])
    assert resolve_target("amos_02.json", content_root, "en") == first
    assert resolve_target(str(second), content_root, "en") == second

    with pytest.raises(RecordIOError):
        resolve_target("joel_01.json", content_root, "en")


def test_append_log_entry(tmp_path):
    log_path = tmp_path / "logs" / "run.jsonl"

    append_log_entry(log_path, {"action": "seo_record", "status": "updated"})
    append_log_entry(log_path, {"action": "seo_record", "status": "failed"})

    lines = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert [line["status"] for line in lines] == ["updated", "failed"]
    assert all("timestamp" in line for line in lines)
