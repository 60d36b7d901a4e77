"""Keyword and navigation chain: SEO keywords plus previous/next chapter links."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..models import ChapterRecord, EnrichmentError
from ..storage import load_record
from ..utils.structured_data import upsert_structured_data
from ..utils.validators import parse_keywords
from .base import EnrichmentDriver, EnrichResult

logger = logging.getLogger(__name__)

Navigation = Tuple[Optional[str], Optional[str]]

KEYWORD_PROMPT = """You are an SEO Expert specializing in Biblical Theology.

YOUR GOAL:
Analyze the following Bible commentary chapter and identify 5-8 relevant SEO keywords or short phrases.
These keywords should capture the writer's specific theological insights, unique interpretations, key figures, and main topics discussed in the text.
Focus on the commentary content itself, not just general biblical themes.

CONTEXT:
Book: {book_name}
Chapter: {chapter_number}
Title: {title}
Content: {content}

CRITICAL RULES:
1. Return ONLY a JSON array of strings.
2. Do not include generic terms like "Chapter 5" unless relevant.
3. Include specific terms used by the writer.
4. Format: ["Keyword 1", "Keyword 2", ...]"""


def build_keyword_prompt(record: ChapterRecord) -> str:
    return KEYWORD_PROMPT.format(
        book_name=record.book_name,
        chapter_number=record.chapter_number,
        title=record.title,
        content=record.content,
    )


def compute_navigation(records: List[Tuple[Path, ChapterRecord]]) -> Dict[Path, Navigation]:
    """Map each record path to its (previous slug, next slug) in numeric chapter order.

    Chapter "00" (the book introduction) sorts first; gaps in numbering are
    simply skipped over.
    """
    ordered = sorted(records, key=lambda item: item[1].chapter_index)
    navigation: Dict[Path, Navigation] = {}
    for index, (path, _) in enumerate(ordered):
        previous_slug = ordered[index - 1][1].slug if index > 0 else None
        next_slug = ordered[index + 1][1].slug if index < len(ordered) - 1 else None
        navigation[Path(path).resolve()] = (previous_slug, next_slug)
    return navigation


def load_book_records(book_dir: Path) -> List[Tuple[Path, ChapterRecord]]:
    """Every readable record in one book directory; unreadable files are logged and left out."""
    records = []
    for path in sorted(Path(book_dir).glob("*.json")):
        try:
            records.append((path, load_record(path)))
        except EnrichmentError as e:
            logger.error(f"[keywords] Error reading {path.name}: {e}")
    return records


class KeywordNavigationDriver(EnrichmentDriver):
    """Attach keywords and chapter navigation; the Article entry mirrors the keyword list."""

    name = "keywords"

    def __init__(self, client, config):
        super().__init__(client, config)
        self.navigation: Dict[Path, Navigation] = {}

    async def prepare(self, paths: List[Path]) -> None:
        """Compute navigation for every book touched by ``paths`` before anything is saved."""
        book_dirs = sorted({Path(path).resolve().parent for path in paths})
        for book_dir in book_dirs:
            records = load_book_records(book_dir)
            self.navigation.update(compute_navigation(records))
            logger.info(f"[keywords] Navigation computed for {len(records)} records in {book_dir.parent.name}")

    def needs_keywords(self, record: ChapterRecord) -> bool:
        return not record.keywords or self.config.refresh_keywords

    async def enrich(self, record: ChapterRecord, path: Path) -> EnrichResult:
        key = Path(path).resolve()
        if key not in self.navigation:
            await self.prepare([path])

        merged = record.model_copy(deep=True)

        if self.needs_keywords(record):
            logger.info(f"[keywords] Generating keywords for {record.slug}")
            keywords = parse_keywords(await self.generate(build_keyword_prompt(record)))
            if keywords != record.keywords:
                merged.keywords = keywords

        merged.previous_chapter, merged.next_chapter = self.navigation.get(key, (None, None))

        article = merged.find_schema("Article")
        if article is not None and merged.keywords:
            article = {**article, "keywords": ", ".join(merged.keywords)}
            merged.structured_data = upsert_structured_data(merged.structured_data, article)

        return merged
