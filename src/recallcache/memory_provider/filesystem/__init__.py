"""Filesystem-based persistence for the semantic memory cache."""

from .provider import FactFileStore, FileSystemConfig

__all__ = ["FactFileStore", "FileSystemConfig"]
