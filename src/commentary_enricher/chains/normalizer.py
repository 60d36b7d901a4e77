"""Content normalization chain: rewrite chapter HTML into the site's house structure."""

import logging
from pathlib import Path
from typing import Optional

from ..models import ChapterRecord
from ..utils.validators import check_content_rewrite, parse_html_response
from .base import EnrichmentDriver, EnrichResult, with_enriched_text

logger = logging.getLogger(__name__)

# Present in every normalized chapter; its presence means the rewrite already ran
NORMALIZED_MARKER = 'class="primary-scripture"'

NORMALIZE_INSTRUCTIONS = """You are an expert Theological Editor and SEO Content Strategist. Normalize the HTML content according to these rules:

1. Introduction headers:
   * DELETE headers that are purely navigational or redundant (e.g. "Introduction to Amos Chapter 1"). Remove the tag entirely.
   * PRESERVE headers that describe a specific sub-topic (e.g. "<h2>Introduction to the Letter to Ephesus</h2>").

2. Exposition header:
   * Find the main exposition header (e.g. "Exposition to Esther Chapter 1", "Exposition on the Letter").
   * REWRITE the text inside its <h2> tag. Do not keep the word "Exposition".
   * Write an engaging, SEO-friendly headline of 5-10 words based on the Chapter Title that invites the reader into the verse-by-verse study.
   * Example: for the title "The Royal Feast" write <h2>Uncovering the Divine Drama of the Royal Feast</h2>.

3. Verse headers: convert simple headers like "Verse 22" or "22" into full references: <h3>{Book} {Chapter}:{Verse}</h3>.

4. Scripture text:
   * Wrap the primary Bible verse text in <blockquote class="primary-scripture">.
   * Remove the leading verse number at the start of the text block ("22 For he sent..." becomes "For he sent...").
   * Remove <sup> numbers and <strong> tags inside this blockquote.

5. Commentary: keep standard commentary in <p> tags. Do not shorten, summarize or drop any commentary.

6. Cross references: use the header <h4>Cross References</h4> and the list form <ul><li><strong>Ref:</strong> Text</li></ul>.

7. Output: return ONLY the raw HTML string. Do not include markdown formatting such as ```html."""

NORMALIZE_CONTEXT = """
**Book Name:** {book_name}
**Chapter Number:** {chapter_number}
**Chapter Title:** {title}

**Input HTML:**
{content}
"""


def build_normalize_prompt(record: ChapterRecord) -> str:
    return NORMALIZE_INSTRUCTIONS + "\n\n" + NORMALIZE_CONTEXT.format(
        book_name=record.book_name,
        chapter_number=record.chapter_number,
        title=record.title,
        content=record.content,
    )


class ContentNormalizeDriver(EnrichmentDriver):
    """Rewrite chapter HTML once; rewrites that lose too much text are refused."""

    name = "normalize"

    def skip_reason(self, record: ChapterRecord) -> Optional[str]:
        if not record.content:
            return "no_content"
        if NORMALIZED_MARKER in record.content:
            return "already_normalized"
        return None

    async def enrich(self, record: ChapterRecord, path: Path) -> EnrichResult:
        raw = await self.generate(build_normalize_prompt(record))
        html = parse_html_response(raw)

        rejection = check_content_rewrite(record.content, html)
        if rejection:
            return rejection

        return with_enriched_text(record, content=html)
