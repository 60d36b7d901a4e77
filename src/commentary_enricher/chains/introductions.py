"""Introduction ingestion chain: Markdown book introductions become chapter "00" records."""

import logging
from pathlib import Path
from typing import List, Optional

from ..config import Settings, get_content_paths
from ..models import ChapterRecord, IntroductionDraft, RecordIOError, RecordOutcome, RecordStatus
from ..storage import book_json_dir, record_filename, save_record
from ..utils.generation import GenerationClient
from ..utils.links import LinkValidator
from ..utils.structured_data import build_article_schema, build_breadcrumb_schema, build_faq_schema
from ..utils.validators import check_content_rewrite, clean_keywords, parse_model
from .base import EnrichmentDriver
from .seo import validate_entity_links

logger = logging.getLogger(__name__)

INTRODUCTION_CHAPTER = "00"
IGNORED_FILES = {"chaptertitles.md"}

INTRODUCTION_PROMPT = """You are an expert Theological Editor and SEO Content Strategist.
Your task is to convert the following Markdown content into a structured JSON object for a Bible Commentary application.

Input Content (Markdown):
{markdown}

Instructions:
1. Convert to HTML: Convert the Markdown to semantic HTML. Keep every paragraph; do not summarize.
2. Normalize:
   * Remove generic headers like "Introduction to..." if they are redundant.
   * Ensure headers are hierarchically correct (h2, h3).
   * Format scripture references if present.
3. Enrich (SEO & Schema):
   * Generate a compelling Meta Description (150-160 chars).
   * Extract relevant Keywords.
   * Identify Entities (People, Places, Concepts) and their Wikipedia URLs (sameAs) when you are certain they exist.
   * Create FAQ items if the text supports it.

Output Format (JSON):
Return ONLY a valid JSON object with this structure:
{{
  "title": "Introduction to {book_name}",
  "content": "<p>HTML content here...</p>",
  "metaDescription": "...",
  "keywords": ["keyword1", "keyword2"],
  "entities": [
    {{"@type": "Person", "name": "...", "description": "...", "sameAs": "https://en.wikipedia.org/..."}}
  ],
  "faq": [
    {{"question": "...", "answer": "..."}}
  ]
}}"""


def book_name_from_filename(path: Path) -> str:
    """``amosintro.md`` -> ``Amos``, ``Isaiah.md`` -> ``Isaiah``."""
    name = Path(path).stem.replace("intro", "").replace("_", " ").strip()
    return name[:1].upper() + name[1:]


def is_introduction_file(path: Path) -> bool:
    path = Path(path)
    return path.suffix == ".md" and path.name not in IGNORED_FILES


def build_introduction_prompt(book_name: str, markdown: str) -> str:
    return INTRODUCTION_PROMPT.format(book_name=book_name, markdown=markdown)


class IntroductionDriver(EnrichmentDriver):
    """Create one introduction record per Markdown file; existing records are left alone."""

    name = "introductions"

    def __init__(
        self,
        client: Optional[GenerationClient],
        config: Settings,
        link_validator: Optional[LinkValidator] = None,
    ):
        super().__init__(client, config)
        self.link_validator = link_validator or LinkValidator.from_settings(config)

    @property
    def source_dir(self) -> Path:
        return get_content_paths(self.config)["introductions"]

    def required_paths(self) -> List[Path]:
        return [self.source_dir]

    def discover(self, target: Optional[str] = None) -> List[Path]:
        if target:
            candidate = Path(target)
            if not candidate.exists():
                candidate = self.source_dir / candidate.name
            if not candidate.exists():
                raise RecordIOError(f"Introduction not found: {target}", record=target, driver=self.name)
            return [candidate]
        return sorted(path for path in self.source_dir.iterdir() if is_introduction_file(path))

    def destination_for(self, book_name: str) -> Path:
        directory = book_json_dir(self.config.content_root, self.config.language, book_name)
        return directory / record_filename(book_name, INTRODUCTION_CHAPTER)

    async def process(self, path: Path) -> RecordOutcome:
        if not is_introduction_file(path):
            return self._skipped(path, "not_an_introduction")

        book_name = book_name_from_filename(path)
        destination = self.destination_for(book_name)
        if destination.exists():
            logger.info(f"[{self.name}] Skipping {path.name}: {destination.name} already exists")
            return self._skipped(path, "already_exists")

        try:
            markdown = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise RecordIOError(f"Cannot read {path}: {e}", record=str(path), driver=self.name) from e

        logger.info(f"[{self.name}] Processing introduction for {book_name}")
        raw = await self.generate(build_introduction_prompt(book_name, markdown), json_mode=True)
        draft = parse_model(raw, IntroductionDraft)

        rejection = check_content_rewrite(markdown, draft.content)
        if rejection:
            logger.warning(f"[{self.name}] Rejected introduction for {book_name}: {rejection.context}")
            return self._skipped(path, rejection.reason)

        record = await self.build_record(book_name, draft)
        save_record(destination, record)
        logger.info(f"[{self.name}] Created {destination}")
        return RecordOutcome(path=str(path), status=RecordStatus.UPDATED)

    async def build_record(self, book_name: str, draft: IntroductionDraft) -> ChapterRecord:
        entities = await validate_entity_links(draft.entities, self.link_validator)
        record = ChapterRecord(
            book_name=book_name,
            chapter_number=INTRODUCTION_CHAPTER,
            title=draft.title or f"Introduction to {book_name}",
            content=draft.content,
            meta_description=draft.meta_description,
            keywords=clean_keywords(draft.keywords),
            entities=entities,
            faq=draft.faq,
        )

        structured_data = [
            build_article_schema(record, self.config.author_name),
            build_breadcrumb_schema(record, self.config.site_url),
        ]
        faq_schema = build_faq_schema(record.faq)
        if faq_schema:
            structured_data.append(faq_schema)
        record.structured_data = structured_data
        return record
