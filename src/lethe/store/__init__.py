"""Lethe persistence layer."""

from lethe.store.lineage import LineageEntry, LineageStore, LineageStoreError
from lethe.store.records import RecordStore

__all__ = [
    "RecordStore",
    "LineageStore",
    "LineageEntry",
    "LineageStoreError",
]
