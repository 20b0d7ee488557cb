"""JSON-file conversation history store.

One pretty-printed UTF-8 JSON array per conversation id under
``data_dir``.  Reads and writes never raise: storage trouble is logged
and degrades to an empty history (load) or to keeping the previous
document (save), so a broken disk never aborts a chat turn.

Writes go to a temporary file in the same directory which is then
``os.replace``-d over the destination, so a concurrent reader sees
either the previous or the new document, never a partial one.
"""

import json
import logging
import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TypeVar

import aiofiles
import aiofiles.os
from langchain_core.messages import BaseMessage, SystemMessage

from zapchat.infra.id_utils import generate_id
from zapchat.infra.telemetry import (
    ATTR_CONVERSATION_ID,
    ATTR_HISTORY_DROPPED,
    ATTR_HISTORY_MESSAGE_COUNT,
    SPAN_HISTORY_LOAD,
    SPAN_HISTORY_SAVE,
    tracer,
)

from .codec import decode_records, encode_message
from .constants import DEFAULT_HISTORY_LIMIT, ENCODING, HISTORY_FILE_SUFFIX, JSON_INDENT

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9@._+-]")


def _is_system(msg: BaseMessage) -> bool:
    return isinstance(msg, SystemMessage)


def truncate_history(
    items: Sequence[T],
    limit: int,
    is_pinned: Callable[[T], bool] = _is_system,  # type: ignore[assignment]
) -> list[T]:
    """Keep the most recent *limit* items, pinning a leading system turn.

    When ``items[0]`` is pinned (a system turn by default) it is kept and
    the rest is cut to its last ``limit - 1`` items, so the window never
    loses the system prompt and never exceeds *limit*.  Otherwise the
    last *limit* items are kept.
    """
    if limit <= 0:
        return []
    if len(items) <= limit:
        return list(items)
    if is_pinned(items[0]):
        tail = limit - 1
        return [items[0], *(items[len(items) - tail :] if tail else [])]
    return list(items[-limit:])


class HistoryStore:
    """Loads and saves bounded per-conversation histories as JSON files."""

    def __init__(self, data_dir: Path | str, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._data_dir = Path(data_dir)
        self.limit = limit

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, conversation_id: str) -> Path:
        """File path of *conversation_id*'s document (id sanitised)."""
        name = _UNSAFE_CHARS.sub("_", conversation_id).lstrip(".") or "_"
        return self._data_dir / f"{name}{HISTORY_FILE_SUFFIX}"

    async def load(self, conversation_id: str) -> list[BaseMessage]:
        """Return at most ``limit`` most recent messages, oldest first."""
        with tracer.start_as_current_span(SPAN_HISTORY_LOAD) as span:
            span.set_attribute(ATTR_CONVERSATION_ID, conversation_id)
            path = self.path_for(conversation_id)
            if not await aiofiles.os.path.exists(path):
                logger.debug("No history for %s, starting empty", conversation_id)
                return []
            try:
                async with aiofiles.open(path, mode="r", encoding=ENCODING) as f:
                    data = json.loads(await f.read())
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, RecursionError):
                logger.warning(
                    "Failed to read history for %s, starting empty",
                    conversation_id,
                    exc_info=True,
                )
                return []

            if not isinstance(data, list):
                logger.warning(
                    "History document for %s is not a list, starting empty",
                    conversation_id,
                )
                return []

            messages, dropped = decode_records(data)
            messages = truncate_history(messages, self.limit)
            span.set_attribute(ATTR_HISTORY_MESSAGE_COUNT, len(messages))
            span.set_attribute(ATTR_HISTORY_DROPPED, dropped)
            logger.debug(
                "Loaded %d messages for %s (%d dropped)",
                len(messages),
                conversation_id,
                dropped,
            )
            return messages

    async def save(self, conversation_id: str, messages: Sequence[BaseMessage]) -> None:
        """Persist the most recent ``limit`` encodable messages; never raises."""
        with tracer.start_as_current_span(SPAN_HISTORY_SAVE) as span:
            span.set_attribute(ATTR_CONVERSATION_ID, conversation_id)
            pairs = [(m, r) for m in messages if (r := encode_message(m)) is not None]
            kept = truncate_history(pairs, self.limit, lambda p: _is_system(p[0]))
            records = [r for _, r in kept]
            span.set_attribute(ATTR_HISTORY_MESSAGE_COUNT, len(records))
            span.set_attribute(ATTR_HISTORY_DROPPED, len(messages) - len(pairs))

            try:
                payload = json.dumps(records, ensure_ascii=False, indent=JSON_INDENT)
                await self._write_atomic(self.path_for(conversation_id), payload)
            except (OSError, TypeError, ValueError):
                logger.warning(
                    "Failed to save history for %s", conversation_id, exc_info=True
                )
                return
            logger.debug("Saved %d messages for %s", len(records), conversation_id)

    async def clear(self, conversation_id: str) -> None:
        """Delete *conversation_id*'s document if present."""
        path = self.path_for(conversation_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError:
            logger.warning("Failed to clear history for %s", conversation_id, exc_info=True)

    async def _write_atomic(self, path: Path, payload: str) -> None:
        if not await aiofiles.os.path.isdir(self._data_dir):
            await aiofiles.os.makedirs(self._data_dir, exist_ok=True)
            logger.info("Created history directory %s", self._data_dir)

        tmp = path.with_name(f".{path.name}.{generate_id('tmp')}")
        try:
            async with aiofiles.open(tmp, mode="w", encoding=ENCODING) as f:
                await f.write(payload)
                await f.flush()
            await aiofiles.os.replace(tmp, path)
        except BaseException:
            try:
                await aiofiles.os.remove(tmp)
            except OSError:
                pass
            raise
