"""Shared constants for the JSON history documents.

Imported by the codec and the store so magic strings live in one place.
"""

from typing import Literal

# Role tags written to disk (LangChain ``message.type`` values)
ROLE_SYSTEM: Literal["system"] = "system"
ROLE_HUMAN: Literal["human"] = "human"
ROLE_AI: Literal["ai"] = "ai"
ROLE_TOOL: Literal["tool"] = "tool"

Role = Literal["system", "human", "ai", "tool"]

# Tags accepted on read from other writers / older revisions
ROLE_ALIASES: dict[str, Role] = {
    ROLE_SYSTEM: ROLE_SYSTEM,
    ROLE_HUMAN: ROLE_HUMAN,
    ROLE_AI: ROLE_AI,
    ROLE_TOOL: ROLE_TOOL,
    "user": ROLE_HUMAN,
    "assistant": ROLE_AI,
    "tool-result": ROLE_TOOL,
    "tool_result": ROLE_TOOL,
}

# Record keys
KEY_TYPE = "type"
KEY_ROLE = "role"
KEY_CONTENT = "content"
KEY_ID = "id"
KEY_KWARGS = "kwargs"
KEY_ADDITIONAL_KWARGS = "additional_kwargs"
KEY_TOOL_CALLS = "tool_calls"
KEY_TOOL_CALL_ID = "tool_call_id"
KEY_NAME = "name"

# Defaults
DEFAULT_HISTORY_LIMIT = 20
HISTORY_FILE_SUFFIX = ".json"
JSON_INDENT = 2
ENCODING = "utf-8"
