"""Sample chapter records for testing."""

import json
from pathlib import Path
from typing import Any

from commentary_enricher.models import ChapterRecord
from commentary_enricher.storage import book_json_dir, record_filename, save_record

SAMPLE_COMMENTARY = (
    "<p><span style=\"font-weight:400\">The words of Amos, who was among the herdmen of Tekoa, "
    "which he saw concerning Israel in the days of Uzziah king of Judah.</span></p>"
    "<p dir=\"ltr\">Amos was not a professional prophet. The Lord took him from following "
    "the flock and sent him to prophesy against the northern kingdom, whose prosperity "
    "had hidden a deep spiritual decay.</p>"
    "<p>Verse 2: The Lord will roar from Zion; the pastures of the shepherds shall mourn.</p>"
)


def sample_record_data(
    book_name: str = "Amos",
    chapter_number: str = "01",
    content: str = SAMPLE_COMMENTARY,
    **extra: Any,
) -> dict[str, Any]:
    """On-disk representation of a freshly migrated chapter."""
    data = {
        "book_name": book_name,
        "chapter_number": chapter_number,
        "title": "The Lion Roars from Zion",
        "content": content,
    }
    data.update(extra)
    return data


def get_sample_record(**kwargs: Any) -> ChapterRecord:
    return ChapterRecord.model_validate(sample_record_data(**kwargs))


def get_formatted_response(content: str = SAMPLE_COMMENTARY, **overrides: Any) -> str:
    """Model answer for the format-and-metadata prompt."""
    payload = {
        "title": "When the Shepherd's Voice Becomes a Roar",
        "metaDescription": "Amos the herdsman carries God's verdict to a prosperous, decaying Israel.",
        "formatted_html": "<h2>The Herdsman Prophet</h2>" + content,
        "entities": [
            {"@type": "Person", "name": "Amos", "description": "Prophet from Tekoa"},
            {"@type": "Place", "name": "Tekoa", "description": "Village south of Bethlehem"},
        ],
        "faq": [
            {
                "question": "Who was Amos?",
                "answer": "A herdsman of Tekoa called to prophesy against Israel.",
            }
        ],
    }
    payload.update(overrides)
    return json.dumps(payload)


def write_record(root: Path, record_data: dict[str, Any], language: str = "en", raw: str | None = None) -> Path:
    """Write a record into the content tree and return its path.

    ``raw`` replaces the JSON payload, for malformed-file tests.
    """
    book = record_data["book_name"]
    path = book_json_dir(root, language, book) / record_filename(book, record_data["chapter_number"])
    if raw is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(raw, encoding="utf-8")
        return path
    return save_record(path, ChapterRecord.model_validate(record_data))
