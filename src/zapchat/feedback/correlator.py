"""Conversation -> last run id / last produced item id.

Feedback arrives as a separate message after the reply it refers to, so
the bot remembers, per conversation, the id of the most recent model run
(what tracing feedback attaches to) and the id of the most recent item a
tool produced (e.g. a fetched joke) that the user may be reacting to.

Both tables are last-write-wins, bounded (LRU) and expire entries after
``ttl``.  All methods are synchronous: under asyncio no other task can
interleave with a mutation.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000
DEFAULT_TTL = timedelta(hours=24)


class _BoundedTable:
    """``OrderedDict`` keyed by conversation id with LRU + TTL eviction."""

    def __init__(
        self, max_entries: int, ttl_seconds: float, clock: Callable[[], float]
    ) -> None:
        self._entries: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: str) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (value, self._clock() + self._ttl_seconds)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted correlation entry for %s", evicted)

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value


class RunCorrelator:
    """In-process correlation tables owned by the composition root."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        ttl_seconds = ttl.total_seconds()
        self._runs = _BoundedTable(max_entries, ttl_seconds, clock)
        self._items = _BoundedTable(max_entries, ttl_seconds, clock)

    def record_run(self, conversation_id: str, run_id: str) -> None:
        self._runs.set(conversation_id, run_id)
        logger.debug("Stored run id %s for %s", run_id, conversation_id)

    def get_run(self, conversation_id: str) -> str | None:
        return self._runs.get(conversation_id)

    def record_produced_item_id(self, conversation_id: str, item_id: str) -> None:
        self._items.set(conversation_id, item_id)
        logger.debug("Stored item id %s for %s", item_id, conversation_id)

    def get_produced_item_id(self, conversation_id: str) -> str | None:
        return self._items.get(conversation_id)
