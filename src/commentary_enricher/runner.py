"""Batch runner: apply one enrichment driver over a set of records."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from .chains.base import EnrichmentDriver
from .chains.commentary import CommentaryFormatDriver
from .chains.introductions import IntroductionDriver
from .chains.keywords import KeywordNavigationDriver
from .chains.normalizer import ContentNormalizeDriver
from .chains.seo import SeoEnrichmentDriver
from .config import Settings, get_config, get_content_paths
from .models import BatchSummary, ConfigurationError, RecordOutcome, RecordStatus
from .storage import append_log_entry
from .utils.generation import GenerationClient

logger = logging.getLogger(__name__)

DRIVERS: dict[str, type[EnrichmentDriver]] = {
    CommentaryFormatDriver.name: CommentaryFormatDriver,
    ContentNormalizeDriver.name: ContentNormalizeDriver,
    KeywordNavigationDriver.name: KeywordNavigationDriver,
    SeoEnrichmentDriver.name: SeoEnrichmentDriver,
    IntroductionDriver.name: IntroductionDriver,
}


def _log_outcome(log_path: Path | None, driver_name: str, outcome: RecordOutcome) -> None:
    if log_path is None:
        return
    append_log_entry(
        log_path,
        {
            "action": f"{driver_name}_record",
            "path": outcome.path,
            "status": outcome.status.value,
            "reason": outcome.reason,
            "error": outcome.error,
            "error_type": outcome.error_type,
        },
    )


async def run_batch(
    paths: list[Path],
    driver: EnrichmentDriver,
    concurrency: int = 1,
    inter_call_delay: float = 0.0,
    log_path: Path | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> BatchSummary:
    """Run ``driver`` over ``paths`` with up to ``concurrency`` records in flight.

    Workers pull from one shared queue, so every record is processed exactly
    once. A worker waits ``inter_call_delay`` seconds after each record while
    work remains. A failing record never stops the batch.

    Returns:
        BatchSummary with one outcome per path, in input order
    """
    start_time = time.time()
    paths = [Path(path) for path in paths]
    concurrency = max(1, concurrency)

    await driver.prepare(paths)

    queue: asyncio.Queue = asyncio.Queue()
    for index, path in enumerate(paths):
        queue.put_nowait((index, path))

    outcomes: list[RecordOutcome | None] = [None] * len(paths)

    async def worker(worker_id: int) -> None:
        while True:
            try:
                index, path = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            outcome = await driver.run(path)
            outcomes[index] = outcome
            _log_outcome(log_path, driver.name, outcome)
            logger.debug(f"[{driver.name}] worker {worker_id} finished {path.name}: {outcome.status.value}")

            if inter_call_delay > 0 and not queue.empty():
                await sleep(inter_call_delay)

    worker_count = min(concurrency, len(paths)) or 1
    logger.info(f"[{driver.name}] Processing {len(paths)} records with {worker_count} worker(s)")
    await asyncio.gather(*(worker(i) for i in range(worker_count)))

    summary = BatchSummary(
        driver=driver.name,
        outcomes=[outcome for outcome in outcomes if outcome is not None],
        runtime_sec=time.time() - start_time,
    )

    logger.info(
        f"[{driver.name}] Batch finished: {summary.succeeded} updated, "
        f"{summary.skipped} skipped, {summary.failed} failed in {summary.runtime_sec:.1f}s"
    )
    if log_path is not None:
        append_log_entry(
            log_path,
            {
                "action": f"{driver.name}_batch_completed",
                "processed": summary.processed,
                "updated": summary.succeeded,
                "skipped": summary.skipped,
                "failed": summary.failed,
                "runtime_sec": summary.runtime_sec,
            },
        )
    return summary


def validate_config(driver: EnrichmentDriver, config: Settings) -> None:
    """Fail before any record work when credentials or directories are missing.

    Raises:
        ConfigurationError: If the driver cannot run with this configuration
    """
    if driver.requires_generation and driver.client is None and not config.openrouter_api_key:
        raise ConfigurationError(
            "OPENROUTER_API_KEY is not set. Add it to .env or the environment.",
            driver=driver.name,
        )

    for path in driver.required_paths():
        if not Path(path).is_dir():
            raise ConfigurationError(f"Directory not found: {path}", driver=driver.name)


def build_driver(
    driver_name: str,
    config: Settings,
    client: GenerationClient | None = None,
) -> EnrichmentDriver:
    """Instantiate a registered driver; the generation client is created when needed."""
    try:
        driver_cls = DRIVERS[driver_name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown driver '{driver_name}'. Available: {', '.join(sorted(DRIVERS))}"
        ) from None

    driver = driver_cls(client, config)
    validate_config(driver, config)

    if driver.client is None and driver.requires_generation:
        driver.client = GenerationClient.from_settings(config, driver_name)
    return driver


async def run_driver(
    driver_name: str,
    target: str | None = None,
    config: Settings | None = None,
    client: GenerationClient | None = None,
    concurrency: int | None = None,
    inter_call_delay: float | None = None,
) -> BatchSummary:
    """Run one driver over the whole corpus, or over a single target record.

    Both modes go through the same per-record logic; a single target is a
    batch of one.
    """
    config = config or get_config()
    driver = build_driver(driver_name, config, client)

    paths = driver.discover(target)
    if not paths:
        logger.warning(f"[{driver_name}] No records found")

    return await run_batch(
        paths,
        driver,
        concurrency=concurrency if concurrency is not None else config.concurrency_for(driver_name),
        inter_call_delay=config.inter_call_delay if inter_call_delay is None else inter_call_delay,
        log_path=get_content_paths(config)["log"],
    )


def run_enrichment(driver_name: str, target: str | None = None, **kwargs: Any) -> BatchSummary:
    """Synchronous wrapper for run_driver."""
    return asyncio.run(run_driver(driver_name, target, **kwargs))


def outcome_counts(summary: BatchSummary) -> dict[str, int]:
    """Totals used by the CLI report."""
    return {
        "processed": summary.processed,
        RecordStatus.UPDATED.value: summary.succeeded,
        RecordStatus.SKIPPED.value: summary.skipped,
        RecordStatus.FAILED.value: summary.failed,
    }
