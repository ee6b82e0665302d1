"""
Out-of-process fact extraction.

When a session ends, the transcript that has not yet been compressed is written
to a pending file and handed to a detached worker process, so the user does not
wait for the extraction LLM calls on exit. The worker extracts facts for every
memory domain, stores them with source ``"exit"`` and deletes the pending file.

Usage::

    python -m recallcache.extraction_worker <pending-file>
"""

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .enums.failure_kind import FailureKind
from .llms.llm_factory import create_llm_provider
from .llms.llm_provider import LLMProvider
from .long_term_memory.semantic_memory_cache import SemanticMemoryCache
from .memory_provider.filesystem import FactFileStore, FileSystemConfig
from .short_term_memory.compression import extract_domain_facts
from .utils.fallbacks import degrade

logger = logging.getLogger(__name__)

EXIT_SOURCE = "exit"
_PAYLOAD_KEYS = ("serialized", "provider", "model")


def write_pending_extraction(
    serialized: str,
    provider: str,
    model: str,
    config: Optional[FileSystemConfig] = None,
) -> Path:
    """
    Write a pending extraction payload into the store directory.

    Parameters:
    -----------
    serialized : str
        Plain-text transcript to extract facts from
    provider : str
        LLM provider name understood by ``create_llm_provider``
    model : str
        Model name for the provider
    config : Optional[FileSystemConfig]
        Store location (defaults to the recallcache home directory)

    Returns:
    --------
    Path
        Path of the atomically written ``.pending-*.json`` file
    """
    store = FactFileStore(config)
    return store.write_pending(
        {"serialized": serialized, "provider": provider, "model": model}
    )


def launch_extraction_worker(pending_path: Union[str, Path]) -> subprocess.Popen:
    """Start a detached worker process for ``pending_path`` without waiting on it."""
    return subprocess.Popen(
        [sys.executable, "-m", "recallcache.extraction_worker", str(pending_path)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def _read_payload(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read pending extraction {path.name} ({FailureKind.MALFORMED.value}): {e}")
        return None

    if not isinstance(payload, dict):
        return None
    if not all(isinstance(payload.get(key), str) and payload.get(key) for key in _PAYLOAD_KEYS):
        logger.warning(f"Pending extraction {path.name} is incomplete, discarding")
        return None
    return payload


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not delete pending extraction {path.name}: {e}")


def run_pending_extraction(
    path: Union[str, Path],
    llm_factory: Callable[[Dict[str, Any]], LLMProvider] = create_llm_provider,
    cache: Optional[SemanticMemoryCache] = None,
) -> int:
    """
    Process one pending extraction file.

    The pending file is always deleted, including when its payload is invalid
    or the LLM is unavailable. Never raises.

    Returns:
    --------
    int
        Number of facts stored
    """
    path = Path(path)
    try:
        payload = _read_payload(path)
        if payload is None:
            return 0

        llm = degrade(
            "Creating LLM provider",
            llm_factory,
            {"provider": payload["provider"], "model": payload["model"]},
            default=None,
        )
        if llm is None:
            return 0

        if cache is None:
            cache = degrade(
                "Opening memory store",
                SemanticMemoryCache,
                storage=FactFileStore(FileSystemConfig(root_path=path.parent)),
                default=None,
            )
            if cache is None:
                return 0

        domain_facts = degrade(
            "Fact extraction",
            extract_domain_facts,
            payload["serialized"],
            llm,
            default=[],
        )

        stored = 0
        for facts in domain_facts:
            stored += degrade(
                f"Storing facts for domain {facts.domain}",
                cache.add_facts,
                facts.facts,
                EXIT_SOURCE,
                facts.domain,
                default=0,
            )
        logger.info(f"Stored {stored} facts from {path.name}")
        return stored
    except Exception as e:
        logger.warning(f"Pending extraction {path.name} failed: {e}")
        return 0
    finally:
        _remove(path)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract durable facts from a pending transcript file"
    )
    parser.add_argument("pending_file", help="Path to a .pending-*.json payload")
    args = parser.parse_args(argv)

    from . import configure_logging

    configure_logging()
    run_pending_extraction(args.pending_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
