"""SEO link enrichment chain: Open Graph fields, breadcrumbs and verified entity links."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..config import Settings
from ..models import ChapterRecord, Entity
from ..utils.generation import GenerationClient
from ..utils.links import LinkValidator
from ..utils.structured_data import (
    build_breadcrumb_schema,
    entity_schema,
    split_article_about,
    upsert_structured_data,
)
from ..utils.validators import parse_entity_links
from .base import EnrichmentDriver, EnrichResult

logger = logging.getLogger(__name__)

LEGACY_OPEN_GRAPH_KEYS = ("og_title", "og_description")

ENTITY_LINK_PROMPT = """You are an Expert Knowledge Graph Engineer specializing in Biblical Theology.

YOUR GOAL:
For each entity provided, find the most accurate Wikipedia URL to populate the "sameAs" schema field.

INPUT ENTITIES:
{entities}

CRITICAL RULES:
1. Context Match: The link MUST refer to the specific BIBLICAL person, place, or concept.
   - BAD: "Four Corners" -> https://en.wikipedia.org/wiki/Four_Corners (US Region)
   - GOOD: "Four Corners" -> https://en.wikipedia.org/wiki/Four_corners_of_the_world
2. Disambiguation: If the term is ambiguous, look for "(biblical)", "(prophet)", "(king)", etc.
3. Accuracy: If you are not 100% sure the Wikipedia page exists and matches the context, return null.
4. No Hallucinations: Do not guess URLs.

OUTPUT JSON FORMAT (a JSON array, nothing else):
[
  {{"@type": "Thing", "name": "Tree of Life", "description": "...", "sameAs": "https://en.wikipedia.org/wiki/Tree_of_life_(biblical)"}}
]"""


def build_entity_link_prompt(entities: List[Entity]) -> str:
    payload = [entity_schema(entity) for entity in entities]
    return ENTITY_LINK_PROMPT.format(entities=json.dumps(payload, indent=2, ensure_ascii=False))


def apply_open_graph(record: ChapterRecord) -> ChapterRecord:
    """Set ``og:title``/``og:description`` and drop the legacy underscore keys."""
    data = record.to_json_dict()
    for key in LEGACY_OPEN_GRAPH_KEYS:
        data.pop(key, None)
    data["og:title"] = record.title
    data["og:description"] = record.meta_description
    return ChapterRecord.model_validate(data)


def entities_from_record(record: ChapterRecord) -> List[Entity]:
    """The record's entities, or the non-CreativeWork items of ``Article.about``."""
    if record.entities:
        return [entity.model_copy(deep=True) for entity in record.entities]

    about_entities, _ = split_article_about(record.find_schema("Article"))
    entities = []
    for item in about_entities:
        try:
            entities.append(Entity.model_validate(item))
        except ValidationError as e:
            logger.warning(f"[seo] Ignoring unusable Article.about item {item!r}: {e}")
    return entities


async def validate_entity_links(entities: List[Entity], validator: LinkValidator) -> List[Entity]:
    """Re-check every stored link; dead or off-domain links become null."""
    checked = []
    for entity in entities:
        if entity.same_as and not await validator.validate(entity.same_as):
            logger.info(f"Removing bad link for {entity.name}: {entity.same_as}")
            entity = entity.model_copy(update={"same_as": None})
        checked.append(entity)
    return checked


class SeoEnrichmentDriver(EnrichmentDriver):
    """Add Open Graph fields, a breadcrumb trail and live-verified reference links."""

    name = "seo"

    def __init__(
        self,
        client: Optional[GenerationClient],
        config: Settings,
        link_validator: Optional[LinkValidator] = None,
    ):
        super().__init__(client, config)
        self.link_validator = link_validator or LinkValidator.from_settings(config)

    async def enrich(self, record: ChapterRecord, path: Path) -> EnrichResult:
        merged = apply_open_graph(record)
        merged.structured_data = upsert_structured_data(
            merged.structured_data, build_breadcrumb_schema(merged, self.config.site_url)
        )

        entities = entities_from_record(merged)
        if not entities:
            logger.info(f"[seo] No entities found to enrich for {path.name}")
            return merged

        entities = await validate_entity_links(entities, self.link_validator)
        missing = [entity for entity in entities if not entity.same_as]
        if missing:
            suggestions = await self.suggest_links(missing)
            entities = [
                entity.model_copy(update={"same_as": suggestions[entity.name.casefold()]})
                if not entity.same_as and suggestions.get(entity.name.casefold())
                else entity
                for entity in entities
            ]

        merged.entities = entities

        article = merged.find_schema("Article")
        if article is not None:
            _, works = split_article_about(article)
            article = {**article, "about": [entity_schema(entity) for entity in entities] + works}
            merged.structured_data = upsert_structured_data(merged.structured_data, article)

        return merged

    async def suggest_links(self, entities: List[Entity]) -> Dict[str, str]:
        """Ask the model for links and keep only those that pass live validation.

        Returns a map from casefolded entity name to verified URL.
        """
        logger.info(f"[seo] Requesting links for {len(entities)} entities")
        raw = await self.generate(build_entity_link_prompt(entities))

        verified: Dict[str, str] = {}
        for suggestion in parse_entity_links(raw):
            if not suggestion.same_as:
                continue
            url = await self.link_validator.validate(suggestion.same_as)
            if url:
                verified[suggestion.name.casefold()] = url
            else:
                logger.info(f"[seo] Model suggested bad link for {suggestion.name}: {suggestion.same_as}")
        return verified
