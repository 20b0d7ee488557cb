"""Turn state passed between the orchestrator stages."""

from dataclasses import dataclass, field
from enum import StrEnum

from langchain_core.messages import BaseMessage

from zapchat.feedback import FeedbackResult


class TurnStage(StrEnum):
    LOADING_HISTORY = "loading_history"
    PREPARING_PROMPT = "preparing_prompt"
    INVOKING_MODEL = "invoking_model"
    EXTRACTING_REPLY = "extracting_reply"
    PERSISTING = "persisting"
    DONE = "done"
    ERROR = "error"


@dataclass
class TurnState:
    """Everything one chat turn has accumulated so far.

    ``history`` is what gets persisted (ending with the user turn once
    prepared, then the assistant turn); ``window`` is the bounded copy
    sent to the model.
    """

    conversation_id: str
    text: str
    feedback: FeedbackResult | None = None
    stage: TurnStage = TurnStage.LOADING_HISTORY
    history: list[BaseMessage] = field(default_factory=list)
    window: list[BaseMessage] = field(default_factory=list)
    run_id: str | None = None
    produced: list[BaseMessage] = field(default_factory=list)
    item_id: str | None = None
    reply: BaseMessage | None = None
    reply_text: str = ""
