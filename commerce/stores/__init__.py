"""Atomic JSON document storage"""

from .file_store import DEFAULT_SCHEMA_VERSION, FileStore

__all__ = ["DEFAULT_SCHEMA_VERSION", "FileStore"]
