"""Helper utilities for recallcache."""

import time
import uuid
from datetime import datetime, timezone

from ..constants import PENDING_PREFIX, PENDING_SUFFIX


class IDGenerator:
    """Generates identifiers for stored facts and transient files."""

    @staticmethod
    def generate_entry_id() -> str:
        """
        Generate a memory entry ID.

        Returns:
            Millisecond timestamp followed by a short random suffix
        """
        unique_part = uuid.uuid4().hex[:6]
        return f"{int(time.time() * 1000)}-{unique_part}"

    @staticmethod
    def generate_pending_filename() -> str:
        """Generate a file name for a pending extraction payload."""
        unique_part = uuid.uuid4().hex[:8]
        return f"{PENDING_PREFIX}{int(time.time() * 1000)}-{unique_part}{PENDING_SUFFIX}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a timestamp as an ISO-8601 UTC string with millisecond precision."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
