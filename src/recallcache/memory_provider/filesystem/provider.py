import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ...constants import (
    DEFAULT_RAG_DIR,
    MEMORIES_FILENAME,
    PENDING_PREFIX,
    PENDING_SUFFIX,
    STALE_PENDING_MAX_AGE_SECONDS,
)
from ...utils.helpers import IDGenerator

logger = logging.getLogger(__name__)


@dataclass
class FileSystemConfig:
    """Configuration for the on-disk fact store."""

    root_path: Union[str, Path] = DEFAULT_RAG_DIR
    memories_filename: str = MEMORIES_FILENAME

    def __post_init__(self) -> None:
        self.root_path = Path(self.root_path).expanduser().resolve()

    @property
    def memories_path(self) -> Path:
        return self.root_path / self.memories_filename


class FactFileStore:
    """
    Filesystem persistence for the semantic memory cache.

    The collection is stored as a single flat JSON array. Every write goes to a
    sibling ``.tmp`` file which is then atomically renamed over the real file,
    so readers never observe a partially written store. The same directory
    holds ``.pending-*.json`` payloads written for the out-of-process
    extraction worker.
    """

    def __init__(self, config: Optional[FileSystemConfig] = None):
        self.config = config or FileSystemConfig()
        self.root_path: Path = self.config.root_path
        try:
            self.root_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            # Loads then come back empty and saves fail through the caller's fallback
            logger.warning("Could not create memory directory %s: %s", self.root_path, exc)

    @property
    def memories_path(self) -> Path:
        return self.config.memories_path

    def load(self) -> List[Dict[str, Any]]:
        """Read the persisted records; a missing or corrupt file yields an empty list."""
        path = self.memories_path
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load memories from %s: %s", path, exc)
            return []

        if not isinstance(payload, list):
            logger.warning("Ignoring memories file %s: expected a JSON array", path)
            return []
        return [record for record in payload if isinstance(record, dict)]

    def save(self, records: List[Dict[str, Any]]) -> None:
        """Persist ``records`` atomically (write to tmp, then rename)."""
        path = self.memories_path
        tmp_path = path.with_name(path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(records, handle, ensure_ascii=False)
        os.replace(tmp_path, path)

    def write_pending(self, payload: Dict[str, Any]) -> Path:
        """Atomically write a pending extraction payload and return its path."""
        path = self.root_path / IDGenerator.generate_pending_filename()
        tmp_path = path.with_name(path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False)
        os.replace(tmp_path, path)
        return path

    def list_pending(self, include_partial: bool = False) -> List[Path]:
        """Pending payloads in name order; ``include_partial`` adds unfinished ``.tmp`` writes."""
        suffixes = (PENDING_SUFFIX, PENDING_SUFFIX + ".tmp") if include_partial else (PENDING_SUFFIX,)
        return sorted(
            entry
            for entry in self.root_path.iterdir()
            if entry.name.startswith(PENDING_PREFIX) and entry.name.endswith(suffixes)
        )

    def cleanup_stale_pending(
        self, max_age_seconds: float = STALE_PENDING_MAX_AGE_SECONDS
    ) -> int:
        """Delete pending payloads and partial writes older than ``max_age_seconds``."""
        try:
            candidates = self.list_pending(include_partial=True)
        except OSError as exc:
            logger.debug("Could not scan %s for stale pending files: %s", self.root_path, exc)
            return 0

        removed = 0
        now = time.time()
        for entry in candidates:
            try:
                if now - entry.stat().st_mtime > max_age_seconds:
                    entry.unlink()
                    removed += 1
                    logger.debug("Deleted stale pending file: %s", entry.name)
            except OSError as exc:
                logger.debug("Could not remove pending file %s: %s", entry.name, exc)
        return removed
