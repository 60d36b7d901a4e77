"""Object-storage upload of published record and audio files."""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Settings
from ..models import EnrichmentError
from ..storage import iter_record_files, load_record, parse_record_filename, resolve_target

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {"json": ".json", "audio": ".mp3"}


class Uploader:
    """Put local files into the content bucket through the storage CLI."""

    def __init__(
        self,
        bucket: str = "bible-commentary-assets",
        command: str = "npx wrangler r2 object put",
        local: bool = True,
        cwd: Optional[Path] = None,
    ):
        self.bucket = bucket
        self.command = command
        self.local = local
        self.cwd = cwd

    @classmethod
    def from_settings(cls, config: Settings) -> "Uploader":
        return cls(bucket=config.upload_bucket, command=config.upload_command, local=config.upload_local)

    def build_command(self, destination: str, local_path: Path) -> List[str]:
        args = shlex.split(self.command) + [f"{self.bucket}/{destination}"]
        if self.local:
            args.append("--local")
        args.append(f"--file={local_path}")
        return args

    def put(self, destination: str, local_path: Path) -> bool:
        """Upload one file. Returns False (and logs) when the command fails."""
        args = self.build_command(destination, local_path)
        try:
            subprocess.run(args, check=True, capture_output=True, text=True, cwd=self.cwd)
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to upload {local_path} to {destination}: {(e.stderr or '').strip()}")
            return False
        except FileNotFoundError as e:
            logger.error(f"Upload command not available ({args[0]}): {e}")
            return False
        return True


def _upload_one(path: Path, destination: str, uploader: Uploader, dry_run: bool, counts: Dict[str, int]) -> None:
    if dry_run:
        logger.info(f"[DRY RUN] Would upload {path} to {destination}")
        counts["uploaded"] += 1
    elif uploader.put(destination, path):
        counts["uploaded"] += 1
    else:
        counts["failed"] += 1


def upload_directory(
    directory: Path,
    language: str,
    kind: str,
    uploader: Uploader,
    dry_run: bool = False,
) -> Dict[str, int]:
    """Upload every ``<book>[-_]<NN>`` file of one kind to ``public-content/<lang>/<kind>/``.

    Files with other names are skipped with a warning.

    Returns:
        Counts of uploaded, failed and skipped files
    """
    if kind not in FILE_EXTENSIONS:
        raise ValueError(f"Unknown upload kind '{kind}'. Expected one of: {', '.join(FILE_EXTENSIONS)}")

    directory = Path(directory)
    files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == FILE_EXTENSIONS[kind])
    logger.info(f"Found {len(files)} {kind} files in {directory}")

    counts = {"uploaded": 0, "failed": 0, "skipped": 0}
    for path in files:
        parsed = parse_record_filename(path.name)
        if parsed is None:
            logger.warning(f"Skipping file with invalid naming format: {path.name} (expected Book_01.json or Book-01.mp3)")
            counts["skipped"] += 1
            continue

        book_slug, chapter = parsed
        logger.info(f"Processing {path.name} -> book {book_slug}, chapter {chapter}")
        _upload_one(path, f"public-content/{language}/{kind}/{path.name}", uploader, dry_run, counts)

    return counts


def publishable_records(config: Settings, target: Optional[str] = None) -> List[Path]:
    """Record files to publish: one resolved target, or the whole store for ``config.language``."""
    if target:
        return [resolve_target(target, config.content_root, config.language)]
    return list(iter_record_files(config.content_root, config.language))


def publish_records(
    paths: List[Path],
    language: str,
    uploader: Uploader,
    dry_run: bool = False,
) -> Dict[str, int]:
    """Publish record files from the store to ``public-content/<lang>/json/<file>``.

    Badly named files are skipped. A file that no longer loads as a record is
    counted as failed and not uploaded.

    Returns:
        Counts of uploaded, failed and skipped files
    """
    logger.info(f"Found {len(paths)} files to publish")

    counts = {"uploaded": 0, "failed": 0, "skipped": 0}
    for path in paths:
        path = Path(path)
        parsed = parse_record_filename(path.name)
        if parsed is None:
            logger.warning(f"Skipping invalid filename: {path.name}")
            counts["skipped"] += 1
            continue

        try:
            record = load_record(path)
        except EnrichmentError as e:
            logger.error(f"Not publishing {path.name}: {e}")
            counts["failed"] += 1
            continue

        book_slug, chapter = parsed
        logger.info(f"Processing {book_slug} {chapter}: {record.title}")
        _upload_one(path, f"public-content/{language}/json/{path.name}", uploader, dry_run, counts)

    return counts
