"""Storage and persistence utilities for chapter records."""

import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import ValidationError

from .models import ChapterRecord, ParseError, RecordIOError, slugify_book

RECORD_NAME_PATTERN = re.compile(r"^(.+?)[-_](\d+)$")


def serialize_record(record: ChapterRecord) -> str:
    """Render a record exactly as it is written to disk."""
    return json.dumps(record.to_json_dict(), indent=2, ensure_ascii=False) + "\n"


def load_record(path: Path) -> ChapterRecord:
    """Load a ChapterRecord from a JSON file.

    Raises:
        ParseError: If the file is not JSON or does not match the record schema
        RecordIOError: If the file cannot be read
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(f"Malformed JSON in {path}: {e}", record=str(path)) from e
    except OSError as e:
        raise RecordIOError(f"Cannot read {path}: {e}", record=str(path)) from e

    if not isinstance(data, dict):
        raise ParseError(
            f"Expected a JSON object in {path}, got {type(data).__name__}", record=str(path)
        )

    try:
        return ChapterRecord.model_validate(data)
    except ValidationError as e:
        raise ParseError(
            f"Invalid chapter record {path}: {e}",
            record=str(path),
            context={"errors": e.errors(include_url=False)},
        ) from e


def save_record(path: Path, record: ChapterRecord) -> Path:
    """Rewrite the whole record file.

    The new content goes to a temporary file in the same directory and is then
    moved over the target, so a reader sees either the old or the new file.
    """
    path = Path(path)
    payload = serialize_record(record)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise RecordIOError(f"Cannot write {path}: {e}", record=str(path)) from e

    return path


def book_json_dir(root: Path, language: str, book: str) -> Path:
    """Directory holding one book's records: ``<root>/<lang>/<book>/json``."""
    return Path(root) / language / slugify_book(book) / "json"


def record_filename(book: str, chapter_number: str | int) -> str:
    """File name for a record, e.g. ``amos_01.json``."""
    return f"{slugify_book(book).replace('-', '_')}_{int(chapter_number):02d}.json"


def parse_record_filename(name: str) -> Optional[Tuple[str, int]]:
    """Split ``Book_01.json`` / ``Book-01.mp3`` into (book slug, chapter)."""
    stem = Path(name).stem
    match = RECORD_NAME_PATTERN.match(stem)
    if not match:
        return None

    book_slug = re.sub(r"\s+", "-", match.group(1).lower().replace("_", "-"))
    return book_slug, int(match.group(2))


def iter_record_files(root: Path, language: str) -> Iterator[Path]:
    """Yield every record file of one language, sorted by path."""
    language_dir = Path(root) / language
    if not language_dir.is_dir():
        return
    yield from sorted(language_dir.glob("*/json/*.json"))


def resolve_target(target: str, root: Path, language: str) -> Path:
    """Resolve a CLI target: an existing path, or a file name inside the corpus."""
    candidate = Path(target)
    if candidate.exists():
        return candidate

    for path in iter_record_files(root, language):
        if path.name == candidate.name:
            return path

    raise RecordIOError(f"Target not found: {target}", record=target)


def append_log_entry(log_path: Path, entry: Dict[str, Any]) -> Path:
    """Append log entry to the enrichment run log (JSON lines)."""
    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    entry = {**entry, "timestamp": datetime.now(timezone.utc).isoformat()}

    with open(log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    return log_path
