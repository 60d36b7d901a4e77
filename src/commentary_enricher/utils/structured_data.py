"""schema.org structured-data builders and discriminator-keyed merging."""

import copy
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models import SCHEMA_TYPE_KEY, ChapterRecord, Entity, FAQItem, slugify_book

SCHEMA_CONTEXT = "https://schema.org"
CREATIVE_WORK = "CreativeWork"


def upsert_structured_data(items: List[Dict[str, Any]], schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Replace the entry with the same ``@type`` in place, or append it.

    Returns a new list; the input is not modified.
    """
    schema_type = schema[SCHEMA_TYPE_KEY]
    result = list(items)
    for index, item in enumerate(result):
        if item.get(SCHEMA_TYPE_KEY) == schema_type:
            result[index] = schema
            return result
    result.append(schema)
    return result


def entity_schema(entity: Entity) -> Dict[str, Any]:
    return entity.model_dump(by_alias=True, mode="json")


def split_article_about(article: Optional[Dict[str, Any]]) -> Tuple[List[Dict], List[Dict]]:
    """Split ``Article.about`` into (entity items, CreativeWork items)."""
    if not article:
        return [], []
    about = article.get("about") or []
    entities = [item for item in about if isinstance(item, dict) and item.get(SCHEMA_TYPE_KEY) != CREATIVE_WORK]
    works = [item for item in about if isinstance(item, dict) and item.get(SCHEMA_TYPE_KEY) == CREATIVE_WORK]
    return entities, works


def chapter_creative_works(record: ChapterRecord) -> List[Dict[str, Any]]:
    works = [{SCHEMA_TYPE_KEY: CREATIVE_WORK, "name": record.book_name}]
    if not record.is_introduction:
        works.append({SCHEMA_TYPE_KEY: CREATIVE_WORK, "name": f"Chapter {record.chapter_number}"})
    return works


def build_article_schema(
    record: ChapterRecord,
    author_name: str,
    entities: Optional[Iterable[Entity]] = None,
    creative_works: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Article entry for a record; ``about`` lists entities, then CreativeWork items."""
    entities = record.entities if entities is None else list(entities)
    works = chapter_creative_works(record) if creative_works is None else creative_works

    article: Dict[str, Any] = {
        "@context": SCHEMA_CONTEXT,
        SCHEMA_TYPE_KEY: "Article",
        "headline": record.title,
        "description": record.meta_description,
        "author": {SCHEMA_TYPE_KEY: "Person", "name": author_name},
        "about": [entity_schema(entity) for entity in entities] + copy.deepcopy(works),
    }
    if record.keywords:
        article["keywords"] = ", ".join(record.keywords)
    return article


def build_faq_schema(faq: Iterable[FAQItem]) -> Optional[Dict[str, Any]]:
    """FAQPage entry, or None when there are no questions."""
    questions = [
        {
            SCHEMA_TYPE_KEY: "Question",
            "name": item.question,
            "acceptedAnswer": {SCHEMA_TYPE_KEY: "Answer", "text": item.answer},
        }
        for item in faq
    ]
    if not questions:
        return None
    return {"@context": SCHEMA_CONTEXT, SCHEMA_TYPE_KEY: "FAQPage", "mainEntity": questions}


def book_url(site_url: str, book_name: str) -> str:
    return f"{site_url.rstrip('/')}/commentaries/{slugify_book(book_name)}"


def build_breadcrumb_schema(record: ChapterRecord, site_url: str) -> Dict[str, Any]:
    """Home > Commentaries > Book (> Chapter N for chapters, not introductions)."""
    site = site_url.rstrip("/")
    crumbs = [
        ("Home", f"{site}/"),
        ("Commentaries", f"{site}/commentaries/"),
        (record.book_name, book_url(site, record.book_name)),
    ]
    if not record.is_introduction:
        crumbs.append(
            (f"Chapter {record.chapter_number}", f"{book_url(site, record.book_name)}/{record.chapter_number}")
        )

    return {
        "@context": SCHEMA_CONTEXT,
        SCHEMA_TYPE_KEY: "BreadcrumbList",
        "itemListElement": [
            {SCHEMA_TYPE_KEY: "ListItem", "position": position, "name": name, "item": item}
            for position, (name, item) in enumerate(crumbs, start=1)
        ],
    }
