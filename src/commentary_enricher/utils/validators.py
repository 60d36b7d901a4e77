"""Response parsing and validation for model output."""

import json
import logging
import re
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..models import Entity, MalformedResponseError, ValidationRejection

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

LEADING_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n?")
TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")
GENERIC_KEYWORD = re.compile(r"^(chapter|verse|ch\.?)\s*\d+$", re.IGNORECASE)

MIN_REWRITE_RATIO = 0.5
RAW_PREVIEW_CHARS = 500


def preview(text: str, limit: int = RAW_PREVIEW_CHARS) -> str:
    """Shorten raw model output for log lines."""
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang marker and a trailing ``` marker.

    The model sometimes wraps its answer in fences even when told not to.
    """
    if text is None:
        return ""
    cleaned = LEADING_FENCE.sub("", text, count=1)
    cleaned = TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _extract_json_block(text: str) -> Optional[str]:
    """Slice from the first opening bracket to the last matching closer."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start : end + 1]


def parse_json_response(raw: str, expect: Type = dict) -> Any:
    """Parse model output as JSON of the expected top-level type.

    Raises:
        MalformedResponseError: If no JSON of the expected type can be read
    """
    cleaned = strip_code_fences(raw)
    if not cleaned:
        raise MalformedResponseError("Empty response from model", raw_text=raw or "")

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        # Tolerate commentary around the JSON payload
        block = _extract_json_block(cleaned)
        if block is None:
            raise MalformedResponseError(f"Response is not JSON: {e}", raw_text=raw) from e
        try:
            data = json.loads(block)
        except json.JSONDecodeError as inner:
            raise MalformedResponseError(f"Response is not JSON: {inner}", raw_text=raw) from inner

    if not isinstance(data, expect):
        expected = " or ".join(t.__name__ for t in expect) if isinstance(expect, tuple) else expect.__name__
        raise MalformedResponseError(
            f"Expected JSON {expected}, got {type(data).__name__}", raw_text=raw
        )
    return data


def parse_model(raw: str, model_cls: Type[ModelT]) -> ModelT:
    """Parse model output into a pydantic model.

    A JSON object wrapped in a ``properties`` key is unwrapped first.
    """
    data = parse_json_response(raw, expect=dict)
    if "properties" in data and isinstance(data["properties"], dict):
        data = data["properties"]

    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise MalformedResponseError(
            f"{model_cls.__name__} missing or invalid fields: {', '.join(missing)}",
            raw_text=raw,
        ) from e


def clean_keywords(keywords: List[Any]) -> List[str]:
    """Strip, drop empties and generic chapter labels, de-duplicate keeping order."""
    seen = set()
    cleaned = []
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        keyword = " ".join(keyword.split())
        if not keyword or GENERIC_KEYWORD.match(keyword):
            continue
        key = keyword.casefold()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(keyword)
    return cleaned


def parse_keywords(raw: str) -> List[str]:
    """Parse a JSON array of keyword strings."""
    data = parse_json_response(raw, expect=(list, dict))
    if isinstance(data, dict):
        data = data.get("keywords")
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise MalformedResponseError("Expected a JSON array of strings", raw_text=raw)

    keywords = clean_keywords(data)
    if not keywords:
        raise MalformedResponseError("No usable keywords in response", raw_text=raw)
    return keywords


def parse_entity_links(raw: str) -> List[Entity]:
    """Parse the entity-link answer: an array of entities, possibly wrapped in an object."""
    data = parse_json_response(raw, expect=(list, dict))
    if isinstance(data, dict):
        arrays = [value for value in data.values() if isinstance(value, list)]
        if len(arrays) != 1:
            raise MalformedResponseError("Expected a JSON array of entities", raw_text=raw)
        data = arrays[0]

    entities = []
    for item in data:
        try:
            entities.append(Entity.model_validate(item))
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid entity in response: {e}", raw_text=raw) from e
    return entities


def parse_html_response(raw: str) -> str:
    """Raw HTML answer with fences removed."""
    html = strip_code_fences(raw)
    if not html:
        raise MalformedResponseError("Empty HTML response from model", raw_text=raw or "")
    return html


def clean_source_html(html: str) -> str:
    """Drop inline styles, ltr markers and span wrappers left by word processors."""
    if not html:
        return ""
    cleaned = re.sub(r' style="[^"]*"', "", html)
    cleaned = cleaned.replace(' dir="ltr"', "")
    cleaned = re.sub(r"<span[^>]*>", "", cleaned)
    return cleaned.replace("</span>", "")


def check_content_rewrite(
    original: str, proposed: str, min_ratio: float = MIN_REWRITE_RATIO
) -> Optional[ValidationRejection]:
    """Reject a rewrite shorter than ``min_ratio`` of the original.

    Truncated or degenerate output is far shorter than the source; a rewrite
    that only reformats stays close to it.
    """
    original_length = len(original or "")
    proposed_length = len(proposed or "")
    if proposed_length < original_length * min_ratio:
        return ValidationRejection(
            reason="content_too_short",
            context={
                "original_length": original_length,
                "proposed_length": proposed_length,
                "min_ratio": min_ratio,
            },
        )
    return None
