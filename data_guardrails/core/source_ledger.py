"""Per-source stale-event counters and the source blacklist."""

import json
import re
from typing import Callable, Dict, List, Set

import structlog

from data_guardrails.database.store import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)

BLACKLIST_STORAGE_KEY = 'blacklisted_sources'
STALE_COUNT_PREFIX = 'stale_count_'

_WHITESPACE = re.compile(r'\s+')


def normalize_source_key(source_name: str) -> str:
    """Lowercase a source name and collapse whitespace runs to '_'."""
    return _WHITESPACE.sub('_', source_name.lower())


class SourceLedger:
    """
    Tracks how often each source was stale and which sources are blacklisted.

    Nothing here raises on storage problems: failures are logged and the
    in-memory state is used for the rest of the session.
    """

    def __init__(self, store: KeyValueStore, blacklist_threshold: Callable[[], int]):
        """
        Args:
            store: Backing key-value store
            blacklist_threshold: Returns the current auto-blacklist stale count
        """
        self.store = store
        self.blacklist_threshold = blacklist_threshold
        self.logger = logger.bind(component="source_ledger")

        self._blacklist: Set[str] = self._load_blacklist()
        self._stale_counts: Dict[str, int] = {}
        # Set when a reset could not clear the store; stored counters are ignored until one does
        self._ignore_stored_counts = False

    def _load_blacklist(self) -> Set[str]:
        try:
            stored = self.store.get(BLACKLIST_STORAGE_KEY)
            if stored:
                return {str(name).lower() for name in json.loads(stored)}
        except (StorageError, ValueError, TypeError) as e:
            self.logger.error("Failed to load source blacklist", error=str(e))
        return set()

    def _save_blacklist(self) -> None:
        try:
            self.store.set(BLACKLIST_STORAGE_KEY, json.dumps(sorted(self._blacklist)))
        except StorageError as e:
            self.logger.error("Failed to save source blacklist", error=str(e))

    # ============================================================
    # Stale tracking
    # ============================================================

    def get_stale_count(self, source_name: str) -> int:
        """Current stale-event count for a source."""
        key = STALE_COUNT_PREFIX + normalize_source_key(source_name)
        if self._ignore_stored_counts:
            return self._stale_counts.get(key, 0)

        stored_count = 0
        try:
            stored = self.store.get(key)
            if stored is not None:
                stored_count = int(stored)
        except (StorageError, ValueError) as e:
            self.logger.warning("Failed to read stale count", source=source_name, error=str(e))
        # memory wins when a previous write was lost
        return max(stored_count, self._stale_counts.get(key, 0))

    def track_stale_source(self, source_name: str) -> int:
        """
        Record a staleness event and auto-blacklist once the threshold is hit.

        Returns:
            The post-increment stale count
        """
        key = STALE_COUNT_PREFIX + normalize_source_key(source_name)
        new_count = self.get_stale_count(source_name) + 1
        self._stale_counts[key] = new_count

        try:
            self.store.set(key, str(new_count))
        except StorageError as e:
            self.logger.error("Failed to save stale count", source=source_name, error=str(e))

        threshold = self.blacklist_threshold()
        self.logger.debug("Stale source tracked", source=source_name,
                          stale_count=new_count, threshold=threshold)

        if new_count >= threshold:
            if not self.is_blacklisted(source_name):
                self.logger.warning("Auto-blacklisting stale source", source=source_name,
                                    stale_count=new_count)
            self.blacklist_source(source_name)

        return new_count

    # ============================================================
    # Blacklist
    # ============================================================

    def blacklist_source(self, source_name: str) -> None:
        self._blacklist.add(source_name.lower())
        self._save_blacklist()

    def unblacklist_source(self, source_name: str) -> None:
        self._blacklist.discard(source_name.lower())
        self._save_blacklist()

    def is_blacklisted(self, source_name: str) -> bool:
        return source_name.lower() in self._blacklist

    def get_blacklisted_sources(self) -> List[str]:
        return sorted(self._blacklist)

    def reset_source_tracking(self) -> None:
        """
        Clear the blacklist and every stale counter.

        Irreversible; callers are expected to have confirmed with the user.
        """
        self._blacklist.clear()
        self._stale_counts.clear()

        try:
            self.store.delete(BLACKLIST_STORAGE_KEY)
            stale_keys = self.store.keys(STALE_COUNT_PREFIX)
            for key in stale_keys:
                self.store.delete(key)
        except StorageError as e:
            self._ignore_stored_counts = True
            self.logger.error("Failed to clear persisted source tracking, "
                              "using in-memory counters", error=str(e))
            self._save_blacklist()
            return

        self._ignore_stored_counts = False
        self.logger.info("Source tracking reset", cleared_counters=len(stale_keys))
