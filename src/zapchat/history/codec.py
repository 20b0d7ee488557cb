"""BaseMessage <-> JSON record converters for the history documents.

Two directions:
- BaseMessage -> record   (``encode_message``, used on save)
- record -> BaseMessage   (``decode_record``, used on load)

Decoding is tolerant on purpose: the set of message kinds and the record
shape changed over time, so a record that cannot be understood decodes
to an ``UnknownRecord`` which the caller drops, and the rest of the
history survives.  Accepted shapes:

- flat records written by this module:
  ``{"type": "human", "content": "oi", "id": "msg_x"}``
- role-tagged records: ``{"role": "user", "content": "oi"}``
- LangChain JS ``toJSON()`` records with the payload under ``kwargs``
  (``type`` may be the message type or ``"constructor"`` with the class
  name as the last element of ``id``).
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from pydantic import ValidationError

from .constants import (
    ENCODING,
    KEY_ADDITIONAL_KWARGS,
    KEY_CONTENT,
    KEY_ID,
    KEY_KWARGS,
    KEY_NAME,
    KEY_ROLE,
    KEY_TOOL_CALL_ID,
    KEY_TOOL_CALLS,
    KEY_TYPE,
    ROLE_AI,
    ROLE_ALIASES,
    ROLE_HUMAN,
    ROLE_SYSTEM,
    ROLE_TOOL,
    Role,
)

logger = logging.getLogger(__name__)

_JS_CONSTRUCTOR = "constructor"
_JS_CLASS_ROLES: dict[str, Role] = {
    "SystemMessage": ROLE_SYSTEM,
    "HumanMessage": ROLE_HUMAN,
    "AIMessage": ROLE_AI,
    "ToolMessage": ROLE_TOOL,
}


@dataclass(frozen=True)
class UnknownRecord:
    """A stored record that could not be turned into a message."""

    record: Any
    reason: str


# ------------------------------------------------------------------
# BaseMessage -> record
# ------------------------------------------------------------------


def message_role(msg: BaseMessage) -> Role | None:
    """Return the on-disk role tag for *msg*, or ``None`` if unsupported.

    ``isinstance`` (not ``msg.type``) so that chunk subclasses such as
    ``AIMessageChunk`` map to their parent role.
    """
    if isinstance(msg, SystemMessage):
        return ROLE_SYSTEM
    if isinstance(msg, HumanMessage):
        return ROLE_HUMAN
    if isinstance(msg, AIMessage):
        return ROLE_AI
    if isinstance(msg, ToolMessage):
        return ROLE_TOOL
    return None


def encode_message(msg: BaseMessage) -> dict[str, Any] | None:
    """Encode *msg* as a flat JSON-safe record.

    Returns ``None`` when the message has an unsupported type or carries
    content/metadata that cannot be serialised (e.g. circular
    ``additional_kwargs``).
    """
    role = message_role(msg)
    if role is None:
        logger.warning("Skipping message of unsupported type %s", type(msg).__name__)
        return None

    record: dict[str, Any] = {KEY_TYPE: role, KEY_CONTENT: msg.content}
    if msg.id:
        record[KEY_ID] = msg.id
    if msg.additional_kwargs:
        record[KEY_ADDITIONAL_KWARGS] = dict(msg.additional_kwargs)
    if isinstance(msg, AIMessage) and msg.tool_calls:
        record[KEY_TOOL_CALLS] = [
            {"name": tc["name"], "args": tc.get("args", {}), "id": tc.get("id")}
            for tc in msg.tool_calls
        ]
    if isinstance(msg, ToolMessage):
        record[KEY_TOOL_CALL_ID] = msg.tool_call_id
        if msg.name:
            record[KEY_NAME] = msg.name

    try:
        json.dumps(record, ensure_ascii=False).encode(ENCODING)
    except (TypeError, ValueError, RecursionError):
        logger.warning(
            "Skipping %s message %s: not JSON serialisable",
            role,
            msg.id,
            exc_info=True,
        )
        return None
    return record


def encode_messages(messages: list[BaseMessage]) -> list[dict[str, Any]]:
    """Encode *messages*, dropping the ones that cannot be represented."""
    return [r for msg in messages if (r := encode_message(msg)) is not None]


# ------------------------------------------------------------------
# record -> BaseMessage
# ------------------------------------------------------------------


def _record_role(record: dict[str, Any]) -> Role | None:
    tag = record.get(KEY_TYPE) or record.get(KEY_ROLE)
    if tag == _JS_CONSTRUCTOR:
        class_path = record.get(KEY_ID)
        if isinstance(class_path, list) and class_path:
            return _JS_CLASS_ROLES.get(str(class_path[-1]))
        return None
    if not isinstance(tag, str):
        return None
    return ROLE_ALIASES.get(tag.lower())


def _record_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Return the dict holding content & co (``kwargs`` for JS records)."""
    nested = record.get(KEY_KWARGS)
    if isinstance(nested, dict):
        return nested
    return record


def _content(fields: dict[str, Any]) -> str | list:
    content = fields.get(KEY_CONTENT)
    if content is None:
        return ""
    if isinstance(content, (str, list)):
        return content
    return str(content)


def _tool_calls(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    calls: list[dict[str, Any]] = []
    for tc in raw:
        if not isinstance(tc, dict) or not tc.get("name"):
            continue
        args = tc.get("args")
        calls.append(
            {
                "name": tc["name"],
                "args": args if isinstance(args, dict) else {},
                "id": tc.get("id"),
            }
        )
    return calls


def decode_record(record: Any) -> BaseMessage | UnknownRecord:
    """Decode one stored record; never raises."""
    if not isinstance(record, dict):
        return UnknownRecord(record, "record is not an object")

    role = _record_role(record)
    if role is None:
        return UnknownRecord(record, "unrecognised role/type tag")

    fields = _record_fields(record)
    content = _content(fields)
    msg_id = fields.get(KEY_ID) if isinstance(fields.get(KEY_ID), str) else None
    extra = fields.get(KEY_ADDITIONAL_KWARGS)
    extra = extra if isinstance(extra, dict) else {}

    try:
        if role == ROLE_SYSTEM:
            return SystemMessage(content=content, id=msg_id, additional_kwargs=extra)
        if role == ROLE_HUMAN:
            return HumanMessage(content=content, id=msg_id, additional_kwargs=extra)
        if role == ROLE_AI:
            return AIMessage(
                content=content,
                id=msg_id,
                additional_kwargs=extra,
                tool_calls=_tool_calls(fields.get(KEY_TOOL_CALLS)),
            )
        tool_call_id = fields.get(KEY_TOOL_CALL_ID)
        name = fields.get(KEY_NAME)
        return ToolMessage(
            content=content,
            id=msg_id,
            additional_kwargs=extra,
            tool_call_id=tool_call_id if isinstance(tool_call_id, str) else "",
            name=name if isinstance(name, str) else None,
        )
    except (ValidationError, TypeError, ValueError) as exc:
        return UnknownRecord(record, f"invalid {role} record: {exc}")


def decode_records(records: list[Any]) -> tuple[list[BaseMessage], int]:
    """Decode *records*, returning the messages and the number dropped."""
    messages: list[BaseMessage] = []
    dropped = 0
    for record in records:
        decoded = decode_record(record)
        if isinstance(decoded, UnknownRecord):
            logger.warning("Dropping stored record: %s", decoded.reason)
            dropped += 1
            continue
        messages.append(decoded)
    return messages, dropped
