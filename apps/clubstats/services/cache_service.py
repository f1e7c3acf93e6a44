"""
In-process read-through cache for record store tables.

One RecordCache belongs to one application (tenant) and is passed to the
CachedRecordStore that uses it. Tests build their own instances.

Contracts:
    - Collections are cached per logical table; a hit skips the store.
    - Empty collections are never cached. A read that returns no rows may
      have raced a concurrent commit, so the next read goes to the store.
    - Writes patch the cached collection in place (append / replace /
      remove). Full invalidation is for bulk or administrative operations.
    - append_if_absent keys on record id, so a row is never cached twice.
"""

import logging
from typing import Callable, Dict, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Logical table names
PLAYERS = "players"
COURTS = "courts"
SESSIONS = "sessions"
CHECK_INS = "check_ins"
MATCHES = "matches"
MATCH_PLAYERS = "match_players"
MATCH_RESULTS = "match_results"
STATISTICS_SNAPSHOTS = "statistics_snapshots"


class RecordCache:
    """Per-table cache of record lists."""

    def __init__(self):
        self._tables: Dict[str, list] = {}
        self.hits = 0
        self.misses = 0

    def get(self, table: str) -> Optional[list]:
        """Cached collection for a table, or None on a miss."""
        records = self._tables.get(table)
        if records is None:
            self.misses += 1
            return None
        self.hits += 1
        return list(records)

    def set(self, table: str, records: list) -> bool:
        """
        Cache a collection read from the store.

        Returns:
            False if the collection was empty and therefore not cached
        """
        if not records:
            logger.debug(f"Not caching empty read of {table}")
            self._tables.pop(table, None)
            return False
        self._tables[table] = list(records)
        return True

    def is_cached(self, table: str) -> bool:
        return table in self._tables

    def append_if_absent(self, table: str, record) -> None:
        """Add a newly written record unless a record with its id is already cached."""
        records = self._tables.get(table)
        if records is None:
            return
        if any(r.id == record.id for r in records):
            return
        records.append(record)

    def replace(self, table: str, record) -> None:
        """Swap the cached record with the same id for its updated version."""
        records = self._tables.get(table)
        if records is None:
            return
        for i, existing in enumerate(records):
            if existing.id == record.id:
                records[i] = record
                return
        records.append(record)

    def remove(self, table: str, predicate: Callable[[T], bool]) -> None:
        """Drop cached records matching predicate."""
        records = self._tables.get(table)
        if records is None:
            return
        remaining = [r for r in records if not predicate(r)]
        if remaining:
            self._tables[table] = remaining
        else:
            # An emptied collection is as unreliable as an empty read
            del self._tables[table]

    def invalidate(self, table: Optional[str] = None) -> None:
        """Forget one table, or everything when table is None."""
        if table is None:
            self._tables.clear()
            logger.info("Record cache cleared")
        else:
            self._tables.pop(table, None)

    def tables(self) -> List[str]:
        return sorted(self._tables)
