"""Sync engine for pyshoptheme - cache-driven theme pull and push."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine, SyncPhase
from .operations import SyncOperations
from .scanner import DirectoryScanner, LocalFile, RemoteAsset
from .state import (
    CacheEntry,
    ThemeCache,
    dump_cache,
    get_cache_path,
    parse_cache,
)

__all__ = [
    "SyncEngine",
    "SyncPhase",
    "SyncOperations",
    "DirectoryScanner",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "LocalFile",
    "RemoteAsset",
    "CacheEntry",
    "ThemeCache",
    "dump_cache",
    "get_cache_path",
    "parse_cache",
]
