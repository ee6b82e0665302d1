"""Configuration constants for recallcache."""

import os
from pathlib import Path

# Logging configuration
RECALLCACHE_LOG_LEVEL = os.getenv("RECALLCACHE_LOG_LEVEL", "WARNING").upper()

# Storage locations
RECALLCACHE_HOME = Path(
    os.getenv("RECALLCACHE_HOME", str(Path.home() / ".recallcache"))
).expanduser()
DEFAULT_RAG_DIR = RECALLCACHE_HOME / "rag"
DEFAULT_MODELS_DIR = RECALLCACHE_HOME / "models"

MEMORIES_FILENAME = "memories.json"
PENDING_PREFIX = ".pending-"
PENDING_SUFFIX = ".json"
STALE_PENDING_MAX_AGE_SECONDS = 60 * 60

# Semantic memory cache defaults
DEFAULT_TOP_K_PER_DOMAIN = 5
DEFAULT_MAX_RESULTS = 15
DEFAULT_SIMILARITY_THRESHOLD = 0.35
DEFAULT_MAX_ENTRIES = 5000
DEDUP_THRESHOLD = 0.92
PRUNE_HALF_LIFE_DAYS = 90

# Compression defaults
DEFAULT_CONTEXT_WINDOW = 128_000
COMPRESSION_THRESHOLD = 0.75
RECENT_TURNS_TO_KEEP = 4
FACT_EXTRACTION_MAX_CHARS = 500
TOOL_RESULT_MAX_CHARS = 500
SUMMARY_MAX_TOKENS = 2048

# Query composition defaults
DEFAULT_WINDOW_SIZE = 2
DEFAULT_MAX_QUERY_CHARS = 1000
DEFAULT_STICKINESS_BOOST = 0.05
DEFAULT_TOOL_CONTEXT_MESSAGES = 3
DEFAULT_TOOL_CONTEXT_CHARS = 200
