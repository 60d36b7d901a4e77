"""Format-and-metadata chain: semantic HTML, SEO title, meta description, entities and FAQ."""

import logging
from pathlib import Path
from typing import List, Optional

from ..models import ChapterRecord, Entity, FormattedChapter
from ..utils.structured_data import build_article_schema, build_faq_schema, upsert_structured_data
from ..utils.validators import check_content_rewrite, clean_source_html, parse_model
from .base import EnrichmentDriver, EnrichResult, with_enriched_text

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 50

FORMAT_PROMPT = """You are an Expert SEO Editor and HTML Formatter for a Bible Commentary website.

YOUR GOAL:
Format the provided commentary into structured, semantic HTML, generate rich metadata, and create an FAQ section.

INPUT DATA (read-only context, do not invent content beyond it):
BOOK: {book_name}
CHAPTER: {chapter_number}
THEME_TITLE: {title}
CONTENT: {content}

TASK 1: METADATA
1. SEO Title:
   - Generate a compelling SEO title based on the THEME_TITLE.
   - CRITICAL RULE: Do NOT include the book name or the chapter number in this title. Focus solely on the theological theme (e.g. "The Tree of Life Restored", not "Revelation 22: Tree of Life").
2. Meta Description:
   - Write a summary of at most 160 characters.
   - TONE RULE: Match the writer's own vocabulary and style.
3. Entities: Extract the 3-5 most significant People, Places, or Concepts discussed in THIS commentary.
   - Do NOT include any reference URLs. Links are added later after verification.

TASK 2: HTML FORMATTING
1. Headers: Wrap verse blocks in <h3> and sections in <h2>.
2. Lists: Convert definitions into <dl> or <ul>.
3. Emphasis: Use <strong> for key theological terms.
4. Keep every paragraph of the commentary. Do not summarize or shorten the text.
5. No internal links.

TASK 3: Q&A GENERATION
1. Generate 3-5 questions and answers based strictly on the provided commentary text.
2. Target the specific theological interpretations found in the text, not generic Bible trivia.

OUTPUT:
Return ONLY a valid JSON object (no markdown fences, no commentary) with exactly these fields:
{{
  "title": "Final Thematic Title",
  "metaDescription": "Meta description in the writer's voice",
  "formatted_html": "<h2>...</h2><p>...</p>",
  "entities": [
    {{"@type": "Thing", "name": "Tree of Life", "description": "Symbol of eternal life"}}
  ],
  "faq": [
    {{"question": "...", "answer": "..."}}
  ]
}}"""


def build_format_prompt(record: ChapterRecord, content: str) -> str:
    """Prompt for one chapter; ``content`` is the cleaned HTML."""
    return FORMAT_PROMPT.format(
        book_name=record.book_name,
        chapter_number=record.chapter_number,
        title=record.title,
        content=content,
    )


def carry_over_links(new_entities: List[Entity], existing: List[Entity]) -> List[Entity]:
    """Keep already-verified links for entities that are extracted again; never trust new ones."""
    known = {entity.name.casefold(): entity.same_as for entity in existing if entity.same_as}
    return [
        entity.model_copy(update={"same_as": known.get(entity.name.casefold())})
        for entity in new_entities
    ]


class CommentaryFormatDriver(EnrichmentDriver):
    """Reformat a raw chapter and attach title, description, entities, FAQ and schema.org data."""

    name = "commentary"

    def skip_reason(self, record: ChapterRecord) -> Optional[str]:
        if len(clean_source_html(record.content)) < MIN_CONTENT_LENGTH:
            return "content_missing"
        if record.find_schema("Article") is not None and record.meta_description:
            return "already_formatted"
        return None

    async def enrich(self, record: ChapterRecord, path: Path) -> EnrichResult:
        cleaned = clean_source_html(record.content)
        raw = await self.generate(build_format_prompt(record, cleaned), json_mode=True)
        update = parse_model(raw, FormattedChapter)

        rejection = check_content_rewrite(cleaned, update.formatted_html)
        if rejection:
            return rejection

        return self.merge(record, update)

    def merge(self, record: ChapterRecord, update: FormattedChapter) -> ChapterRecord:
        merged = with_enriched_text(record, title=update.title, content=update.formatted_html)
        merged.meta_description = update.meta_description
        merged.entities = carry_over_links(update.entities, record.entities)
        merged.faq = list(update.faq)

        structured = upsert_structured_data(
            merged.structured_data, build_article_schema(merged, self.config.author_name)
        )
        faq_schema = build_faq_schema(merged.faq)
        if faq_schema:
            structured = upsert_structured_data(structured, faq_schema)
        merged.structured_data = structured
        return merged
