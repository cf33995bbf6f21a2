"""In-memory record cache fed by record maps from the v3 API."""

import logging
from typing import Any, Callable, Iterator, Mapping, Optional

from .tables import Table, lookup_table
from .values import JsonValue

logger = logging.getLogger("notion-sync")

RecordMap = Mapping[str, Mapping[str, Mapping[str, Any]]]


class RecordCache:
    """Latest known value for every (table, record id) seen so far.

    One dict per table. Merging a record map overwrites unconditionally:
    whatever was merged last wins, no version comparison is done. Nothing is
    ever evicted.
    """

    def __init__(self, initial: Optional[Mapping["str | Table", Mapping[str, JsonValue]]] = None):
        self._tables: dict[Table, dict[str, JsonValue]] = {table: {} for table in Table}
        if initial:
            for name, records in initial.items():
                table = lookup_table(name)
                if table is None:
                    raise ValueError(f"Unknown table: {name}")
                self._tables[table].update(records)

    def get(self, table: "str | Table", record_id: str) -> Optional[JsonValue]:
        """Return the cached value, or None if the record is unknown."""
        resolved = lookup_table(table)
        if resolved is None:
            return None
        return self._tables[resolved].get(record_id)

    def merge(self, record_map: Optional[RecordMap]) -> int:
        """Write every ``table -> id -> {role, value}`` entry into the cache.

        Tables we do not track and entries without a ``value`` (records the
        user has no access to come back as ``{"role": "none"}``) are skipped.
        Runs without yielding, so concurrent tasks never see half a merge.

        Returns:
            Number of records written.
        """
        if not record_map:
            return 0
        written = 0
        for name, records in record_map.items():
            table = lookup_table(name)
            if table is None:
                logger.debug(f"Skipping unknown table in record map: {name}")
                continue
            if not records:
                continue
            if not isinstance(records, Mapping):
                logger.debug(f"Skipping malformed {name} entry in record map: {type(records).__name__}")
                continue
            target = self._tables[table]
            for record_id, entry in records.items():
                if not isinstance(entry, Mapping) or "value" not in entry:
                    continue
                target[record_id] = entry["value"]
                written += 1
        return written

    def records(self, table: "str | Table") -> list[JsonValue]:
        """All cached values of a table, in the order they were first cached."""
        resolved = lookup_table(table)
        if resolved is None:
            return []
        return list(self._tables[resolved].values())

    def ids(self, table: "str | Table") -> list[str]:
        resolved = lookup_table(table)
        if resolved is None:
            return []
        return list(self._tables[resolved].keys())

    def find(self, table: "str | Table", predicate: Callable[[JsonValue], bool]) -> list[JsonValue]:
        """Cached values of a table for which predicate returns true."""
        return [value for value in self.records(table) if predicate(value)]

    def count(self, table: "str | Table") -> int:
        resolved = lookup_table(table)
        return len(self._tables[resolved]) if resolved is not None else 0

    def snapshot(self) -> dict[str, dict[str, JsonValue]]:
        """Shallow copy of the cache keyed by table name."""
        return {table.value: dict(records) for table, records in self._tables.items()}

    def __contains__(self, key: tuple) -> bool:
        table, record_id = key
        resolved = lookup_table(table)
        return resolved is not None and record_id in self._tables[resolved]

    def __len__(self) -> int:
        return sum(len(records) for records in self._tables.values())

    def __iter__(self) -> Iterator[tuple[Table, str]]:
        for table, records in self._tables.items():
            for record_id in records:
                yield table, record_id
