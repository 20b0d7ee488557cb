"""Exceptions raised by the response pipeline."""


class ResponseGenerationError(Exception):
    """The model/agent call for a turn failed.

    Raised after a best-effort save of the history accumulated so far.
    ``__cause__`` holds the original exception.
    """

    def __init__(self, conversation_id: str, message: str) -> None:
        super().__init__(f"Failed to get response from LLM: {message}")
        self.conversation_id = conversation_id
