"""ID generation.

Turns created by the bot get a ``{prefix}_{random}`` id so that a stored
record can be traced back by eye (``msg_kJ3pW7mD4bNx``).  Run ids are
plain UUID4 strings because LangSmith keys runs and feedback by UUID.
"""

import secrets
import string
import uuid

_ALPHABET = string.ascii_letters + string.digits
_DEFAULT_LENGTH = 12


def generate_id(prefix: str, length: int = _DEFAULT_LENGTH) -> str:
    """Return ``"{prefix}_{random}"`` with *length* alphanumeric characters."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"


def new_run_id() -> str:
    """Return a fresh run id (UUID4, hyphenated)."""
    return str(uuid.uuid4())
