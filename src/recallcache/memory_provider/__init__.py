from .filesystem import FactFileStore, FileSystemConfig

__all__ = ["FactFileStore", "FileSystemConfig"]
