"""Tests for pydantic models."""

import pytest
from pydantic import ValidationError

from commentary_enricher.models import (
    BatchSummary,
    ChapterRecord,
    Entity,
    ExhaustedRetriesError,
    GenerationError,
    RecordOutcome,
    RecordStatus,
    TransientRemoteError,
    make_slug,
    slugify_book,
)
from fixtures.records import sample_record_data


class TestChapterRecord:
    """Test ChapterRecord validation at the file boundary."""

    def test_minimal_record(self):
        record = ChapterRecord.model_validate(sample_record_data())

        assert record.book_name == "Amos"
        assert record.chapter_number == "01"
        assert record.slug == "amos-01"
        assert record.original_title is None
        assert record.original_content is None
        assert record.structured_data == []

    def test_integer_chapter_is_padded(self):
        record = ChapterRecord.model_validate(sample_record_data(chapter_number=5))
        assert record.chapter_number == "05"
        assert record.chapter_index == 5

    def test_non_numeric_chapter_rejected(self):
        with pytest.raises(ValidationError):
            ChapterRecord.model_validate(sample_record_data(chapter_number="one"))

    def test_missing_book_name_rejected(self):
        data = sample_record_data()
        del data["book_name"]
        with pytest.raises(ValidationError):
            ChapterRecord.model_validate(data)

    def test_content_list_is_joined(self):
        record = ChapterRecord.model_validate(sample_record_data(content=["<p>a</p>", "<p>b</p>"]))
        assert record.content == "<p>a</p><p>b</p>"

    def test_structured_data_dict_becomes_list(self):
        record = ChapterRecord.model_validate(
            sample_record_data(structuredData={"@type": "Article", "headline": "x"})
        )
        assert record.structured_data == [{"@type": "Article", "headline": "x"}]

    def test_duplicate_discriminators_collapse_in_place(self):
        record = ChapterRecord.model_validate(
            sample_record_data(
                structuredData=[
                    {"@type": "Article", "headline": "old"},
                    {"@type": "BreadcrumbList"},
                    {"@type": "Article", "headline": "new"},
                ]
            )
        )

        types = [item["@type"] for item in record.structured_data]
        assert types == ["Article", "BreadcrumbList"]
        assert record.find_schema("Article")["headline"] == "new"

    def test_unknown_keys_survive_round_trip(self):
        record = ChapterRecord.model_validate(sample_record_data(**{"og:title": "Roar", "audio_url": "a.mp3"}))
        dumped = record.to_json_dict()

        assert dumped["og:title"] == "Roar"
        assert dumped["audio_url"] == "a.mp3"

    def test_aliases_used_on_dump(self):
        record = ChapterRecord.model_validate(sample_record_data(metaDescription="desc"))
        dumped = record.to_json_dict()

        assert dumped["metaDescription"] == "desc"
        assert dumped["structuredData"] == []
        assert "meta_description" not in dumped

    def test_introduction_flag(self):
        assert ChapterRecord.model_validate(sample_record_data(chapter_number="00")).is_introduction
        assert not ChapterRecord.model_validate(sample_record_data()).is_introduction


class TestEntity:
    def test_schema_aliases(self):
        entity = Entity.model_validate(
            {"@type": "Person", "name": "Amos", "sameAs": "https://en.wikipedia.org/wiki/Amos_(prophet)"}
        )
        assert entity.type == "Person"
        assert entity.same_as == "https://en.wikipedia.org/wiki/Amos_(prophet)"
        assert entity.model_dump(by_alias=True)["@type"] == "Person"

    def test_defaults(self):
        entity = Entity(name="Zion")
        assert entity.type == "Thing"
        assert entity.same_as is None


class TestSlugs:
    @pytest.mark.parametrize(
        "book, expected",
        [("Amos", "amos"), ("1 John", "1-john"), ("Song of Solomon", "song-of-solomon"), ("Acts!", "acts")],
    )
    def test_slugify_book(self, book, expected):
        assert slugify_book(book) == expected

    def test_make_slug(self):
        assert make_slug("1 John", 3) == "1-john-03"
        assert make_slug("Amos", "00") == "amos-00"


class TestBatchSummary:
    def test_counts(self):
        summary = BatchSummary(
            driver="commentary",
            outcomes=[
                RecordOutcome(path="a", status=RecordStatus.UPDATED),
                RecordOutcome(path="b", status=RecordStatus.SKIPPED, reason="already_formatted"),
                RecordOutcome(path="c", status=RecordStatus.FAILED, error="boom"),
                RecordOutcome(path="d", status=RecordStatus.UPDATED),
            ],
        )

        assert summary.processed == 4
        assert summary.succeeded == 2
        assert summary.skipped == 1
        assert summary.failed == 1


def test_error_hierarchy():
    assert issubclass(TransientRemoteError, GenerationError)
    assert issubclass(ExhaustedRetriesError, GenerationError)

    error = GenerationError("failed", record="amos_01.json", driver="seo", context={"status": 500})
    assert error.record == "amos_01.json"
    assert error.driver == "seo"
    assert error.context == {"status": 500}
