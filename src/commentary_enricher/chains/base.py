"""Shared driver template: load, skip check, generate, parse, merge, save."""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..config import Settings, get_content_paths
from ..models import (
    ChapterRecord,
    EnrichmentError,
    MalformedResponseError,
    RecordOutcome,
    RecordStatus,
    ValidationRejection,
)
from ..storage import iter_record_files, load_record, resolve_target, save_record, serialize_record
from ..utils.generation import GenerationClient
from ..utils.validators import preview

logger = logging.getLogger(__name__)

EnrichResult = Union[ChapterRecord, ValidationRejection]


def with_enriched_text(
    record: ChapterRecord, title: Optional[str] = None, content: Optional[str] = None
) -> ChapterRecord:
    """Copy of ``record`` with a new title and/or content.

    The first value ever replaced is kept in ``original_title`` /
    ``original_content``; later enrichments never touch those fields.
    """
    updates = {}
    if title is not None and title != record.title:
        updates["title"] = title
        if record.original_title is None:
            updates["original_title"] = record.title
    if content is not None and content != record.content:
        updates["content"] = content
        if record.original_content is None:
            updates["original_content"] = record.content
    return record.model_copy(update=updates, deep=True)


class EnrichmentDriver:
    """Base class for one enrichment pipeline applied record by record.

    Subclasses implement ``skip_reason`` and ``enrich``. ``run`` is the failure
    boundary: whatever goes wrong for one record becomes a failed outcome and
    nothing is written for it.
    """

    name = "base"
    requires_generation = True

    def __init__(self, client: Optional[GenerationClient], config: Settings):
        self.client = client
        self.config = config

    def discover(self, target: Optional[str] = None) -> List[Path]:
        """Record files to process: one resolved target, or the whole corpus."""
        if target:
            return [resolve_target(target, self.config.content_root, self.config.language)]
        return list(iter_record_files(self.config.content_root, self.config.language))

    def required_paths(self) -> List[Path]:
        """Directories that must exist before a batch starts."""
        return [get_content_paths(self.config)["language"]]

    async def prepare(self, paths: List[Path]) -> None:
        """Hook run over the full target set before any record is processed."""
        return None

    def skip_reason(self, record: ChapterRecord) -> Optional[str]:
        return None

    async def enrich(self, record: ChapterRecord, path: Path) -> EnrichResult:
        raise NotImplementedError

    async def generate(self, prompt: str, json_mode: bool = False) -> str:
        if self.client is None:
            raise EnrichmentError("No generation client configured", driver=self.name)
        return await self.client.generate(prompt, json_mode=json_mode)

    async def run(self, path: Path) -> RecordOutcome:
        """Process one record and report what happened."""
        path = Path(path)
        try:
            return await self.process(path)
        except MalformedResponseError as e:
            logger.error(f"[{self.name}] Failed to parse model response for {path.name}: {e}")
            logger.error(f"[{self.name}] Raw response: {preview(e.raw_text)}")
            return self._failed(path, e)
        except EnrichmentError as e:
            logger.error(f"[{self.name}] Error processing {path.name}: {e}")
            return self._failed(path, e)
        except Exception as e:
            logger.exception(f"[{self.name}] Unexpected error processing {path.name}: {e}")
            return self._failed(path, e)

    async def process(self, path: Path) -> RecordOutcome:
        record = load_record(path)

        reason = self.skip_reason(record)
        if reason:
            logger.info(f"[{self.name}] Skipping {path.name}: {reason}")
            return self._skipped(path, reason)

        logger.info(f"[{self.name}] Processing {path.name}")
        result = await self.enrich(record, path)

        if isinstance(result, ValidationRejection):
            logger.warning(f"[{self.name}] Rejected update for {path.name}: {result.reason} {result.context}")
            return self._skipped(path, result.reason)

        if serialize_record(result) == serialize_record(record):
            logger.info(f"[{self.name}] No changes for {path.name}")
            return self._skipped(path, "unchanged")

        save_record(path, result)
        logger.info(f"[{self.name}] Updated {path.name}")
        return RecordOutcome(path=str(path), status=RecordStatus.UPDATED)

    def _skipped(self, path: Path, reason: str) -> RecordOutcome:
        return RecordOutcome(path=str(path), status=RecordStatus.SKIPPED, reason=reason)

    def _failed(self, path: Path, error: Exception) -> RecordOutcome:
        return RecordOutcome(
            path=str(path),
            status=RecordStatus.FAILED,
            error=str(error),
            error_type=type(error).__name__,
        )
