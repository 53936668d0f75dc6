"""
In-memory definition store keyed by (entity type, canonical hash).
"""
import threading
from collections import defaultdict
from typing import Iterator, Optional

from helpers import canonicalize_hash


class DefinitionCache:
    """
    Keyed store of processed manifest definitions.

    Every hash argument is canonicalized to its unsigned 32-bit form, so a signed
    and an unsigned lookup of the same logical hash return the identical object.
    Writes are serialized by a lock; reads are plain dict lookups.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._defs: dict[str, dict[int, dict]] = defaultdict(dict)
        self._count = 0

    def get(self, entity_type: str, item_hash: int | str) -> Optional[dict]:
        table = self._defs.get(entity_type)
        if not table:
            return None
        return table.get(canonicalize_hash(item_hash))

    def set(self, entity_type: str, item_hash: int | str, definition: dict) -> None:
        key = canonicalize_hash(item_hash)
        with self._lock:
            table = self._defs[entity_type]
            if key not in table:
                self._count += 1
            table[key] = definition

    def has(self, entity_type: str, item_hash: int | str) -> bool:
        return self.get(entity_type, item_hash) is not None

    def items(self, entity_type: str) -> Iterator[tuple[int, dict]]:
        """
        Iterate (canonical hash, definition) pairs of one entity type.

        Iterates over a snapshot so concurrent miss-fill writes do not break the scan.
        """
        table = self._defs.get(entity_type)
        if not table:
            return iter(())
        with self._lock:
            snapshot = list(table.items())
        return iter(snapshot)

    def entity_types(self) -> list[str]:
        return [t for t, table in self._defs.items() if table]

    def clear(self) -> None:
        with self._lock:
            self._defs.clear()
            self._count = 0

    @property
    def size(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def __contains__(self, key: tuple[str, int | str]) -> bool:
        entity_type, item_hash = key
        return self.has(entity_type, item_hash)
