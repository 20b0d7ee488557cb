"""Per-conversation chat history persisted as JSON documents."""

from .codec import (
    UnknownRecord,
    decode_record,
    decode_records,
    encode_message,
    encode_messages,
)
from .store import HistoryStore, truncate_history

__all__ = [
    "HistoryStore",
    "UnknownRecord",
    "decode_record",
    "decode_records",
    "encode_message",
    "encode_messages",
    "truncate_history",
]
