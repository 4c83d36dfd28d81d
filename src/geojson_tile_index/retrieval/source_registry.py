"""
Source Registry

Holds the one installed index of every source. Each load takes a generation
number when it starts; an install is refused when a load that started later
has already installed its index, so a slow stale load can never replace the
result of a newer one. Readers see either the previous complete index or the
new complete index.
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import structlog

from ..indexing.base import TileIndex


@dataclass(frozen=True)
class RegistryEntry:
    index: TileIndex
    generation: int


class SourceRegistry:
    """Thread-safe mapping of source id to its installed index."""

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        # generations of loads that have neither installed nor been abandoned
        self._pending: Dict[str, Set[int]] = {}
        # loads started before a removal must not resurrect the source; kept
        # only while such loads are pending
        self._removed_at: Dict[str, int] = {}
        self._generations = itertools.count(1)
        self._lock = threading.Lock()
        self.logger = structlog.get_logger(component="SourceRegistry")

    def begin_load(self, source: str) -> int:
        """Reserve the generation number of a load that is starting now."""
        with self._lock:
            generation = next(self._generations)
            self._pending.setdefault(source, set()).add(generation)
            return generation

    def abandon_load(self, source: str, generation: int) -> None:
        """Forget a load that failed before reaching ``install``."""
        with self._lock:
            self._finish_load(source, generation)

    def _finish_load(self, source: str, generation: int) -> None:
        pending = self._pending.get(source)
        if pending is not None:
            pending.discard(generation)
            if not pending:
                del self._pending[source]

        removed_at = self._removed_at.get(source)
        if removed_at is not None and not any(g < removed_at for g in self._pending.get(source, ())):
            del self._removed_at[source]

    def install(self, source: str, index: TileIndex, generation: int) -> bool:
        """
        Install a freshly built index.

        Args:
            source: Source id
            index: Fully built index
            generation: Value returned by ``begin_load`` for this load

        Returns:
            True if installed, False if a newer load already installed or
            the source was removed after this load started
        """
        with self._lock:
            removed_at = self._removed_at.get(source, 0)
            current = self._entries.get(source)
            self._finish_load(source, generation)

            if generation < removed_at:
                self.logger.info("Discarding index of removed source", source=source, generation=generation)
                return False

            if current is not None and current.generation > generation:
                self.logger.info(
                    "Discarding stale index",
                    source=source,
                    generation=generation,
                    installed_generation=current.generation
                )
                return False
            self._entries[source] = RegistryEntry(index=index, generation=generation)

        self.logger.info("Index installed", source=source, generation=generation, mode=index.mode)
        return True

    def get(self, source: str) -> Optional[TileIndex]:
        entry = self._entries.get(source)
        return entry.index if entry is not None else None

    def generation(self, source: str) -> Optional[int]:
        entry = self._entries.get(source)
        return entry.generation if entry is not None else None

    def remove(self, source: str) -> bool:
        """Drop a source's index; returns False if none was installed."""
        with self._lock:
            removed = self._entries.pop(source, None) is not None
            if self._pending.get(source):
                self._removed_at[source] = next(self._generations)
        if removed:
            self.logger.info("Source removed", source=source)
        return removed

    def sources(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, source: str) -> bool:
        return source in self._entries

    def __len__(self) -> int:
        return len(self._entries)
