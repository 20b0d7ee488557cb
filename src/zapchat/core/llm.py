"""Model clients: plain chat completion and tool-using agent.

Both expose ``ainvoke(messages, config) -> list[BaseMessage]`` returning
only the turns the call produced, so the orchestrator handles them the
same way:

- ``ChatModelClient``  -> ``[AIMessage]``
- ``AgentModelClient`` -> ``[AIMessage(tool_calls), ToolMessage, ..., AIMessage]``
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langchain_openai import ChatOpenAI

from zapchat.configs.system import LLMConfig, ToolsConfig

logger = logging.getLogger(__name__)

PROVIDER_OPENROUTER = "openrouter"
AGENT_INPUT_KEY_MESSAGES = "messages"


def build_chat_model(config: LLMConfig) -> ChatOpenAI:
    """Create the OpenAI-compatible chat model for *config*."""
    headers: dict[str, str] | None = None
    if config.provider == PROVIDER_OPENROUTER:
        headers = {
            "HTTP-Referer": config.openrouter_referer,
            "X-Title": config.openrouter_title,
        }
    return ChatOpenAI(
        base_url=config.endpoint,
        api_key=config.api_key or None,
        model=config.model_name,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout.total_seconds(),
        max_retries=config.max_retries,
        default_headers=headers,
    )


class ModelClient(ABC):
    """Abstract model/agent collaborator."""

    @abstractmethod
    async def ainvoke(
        self, messages: Sequence[BaseMessage], config: RunnableConfig
    ) -> list[BaseMessage]:
        """Run the model on *messages*; return the turns it produced."""


class ChatModelClient(ModelClient):
    """Single completion, no tools."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    async def ainvoke(
        self, messages: Sequence[BaseMessage], config: RunnableConfig
    ) -> list[BaseMessage]:
        reply = await self._llm.ainvoke(list(messages), config=config)
        return [reply]


class AgentModelClient(ModelClient):
    """ReAct-style agent over *tools* (``langchain.agents.create_agent``).

    The conversation already starts with the system turn, so the agent
    is built without a ``system_prompt`` of its own.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        tools: Sequence[BaseTool],
        fallback: ModelClient | None = None,
    ) -> None:
        from langchain.agents import create_agent

        self._graph = create_agent(llm, tools=list(tools))
        self._tool_names = [t.name for t in tools]
        self._fallback = fallback

    async def ainvoke(
        self, messages: Sequence[BaseMessage], config: RunnableConfig
    ) -> list[BaseMessage]:
        inputs = list(messages)
        try:
            result = await self._graph.ainvoke(
                {AGENT_INPUT_KEY_MESSAGES: inputs}, config=config
            )
        except Exception:
            if self._fallback is None:
                raise
            logger.warning(
                "Agent call with tools %s failed, falling back to plain model",
                self._tool_names,
                exc_info=True,
            )
            # The agent run already claimed run_id; the fallback gets a fresh one.
            retry_config = RunnableConfig(
                **{k: v for k, v in config.items() if k != "run_id"}
            )
            return await self._fallback.ainvoke(inputs, retry_config)
        return list(result[AGENT_INPUT_KEY_MESSAGES][len(inputs) :])


def build_model_client(
    llm: BaseChatModel, tools: Sequence[BaseTool], tools_config: ToolsConfig
) -> ModelClient:
    """Agent client when *tools* are available, plain client otherwise."""
    plain = ChatModelClient(llm)
    if not tools:
        logger.info("No tools loaded, using plain chat completion")
        return plain
    logger.info("Using agent with %d tools", len(tools))
    return AgentModelClient(
        llm, tools, fallback=plain if tools_config.fallback_to_plain else None
    )
