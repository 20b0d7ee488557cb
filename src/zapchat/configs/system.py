from datetime import timedelta

from pydantic import BaseModel, Field

from .prompt import DEFAULT_SYSTEM_PROMPT


class HistoryConfig(BaseModel):
    """Conversation history persistence settings."""

    limit: int = Field(
        default=20,
        ge=2,
        description="Retention window: max turns kept on disk and sent to the model",
    )
    data_dir: str = Field(
        default="data",
        description="Directory holding one JSON document per conversation",
    )


class LLMConfig(BaseModel):
    """Configuration for the OpenAI-compatible chat model."""

    provider: str = Field(
        default="openai",
        description="Provider name, e.g. 'openai', 'openrouter', 'ollama'",
    )
    model_name: str = Field(
        default="openai/gpt-4.1-nano", description="Model identifier"
    )
    endpoint: str | None = Field(
        default=None, description="Base URL of the OpenAI-compatible API"
    )
    api_key: str = Field(default="", description="API key for the model endpoint")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    max_tokens: int | None = Field(
        default=None, description="Maximum tokens in a single response"
    )
    timeout: timedelta = Field(
        default=timedelta(seconds=60), description="Per-request timeout"
    )
    max_retries: int = Field(default=2, description="Client-side retries")
    openrouter_referer: str = Field(
        default="https://whatsapp-assistant",
        description="HTTP-Referer header sent to OpenRouter",
    )
    openrouter_title: str = Field(
        default="WhatsApp Assistant",
        description="X-Title header sent to OpenRouter",
    )


class ToolsConfig(BaseModel):
    """MCP tool server and tool-result handling."""

    mcp_server_url: str | None = Field(
        default=None, description="SSE endpoint of the MCP tool server"
    )
    mcp_server_name: str = Field(
        default="joke", description="Name the MCP server is registered under"
    )
    item_id_keys: list[str] = Field(
        default_factory=lambda: ["joke_id", "jokeId", "item_id", "itemId", "id"],
        description="Keys searched (in order) for an item id in tool results",
    )
    fallback_to_plain: bool = Field(
        default=True,
        description="Retry with the plain model when the agent call fails",
    )


class PromptConfig(BaseModel):
    """System prompt configuration."""

    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT, description="System prompt for every chat"
    )


class ChatConfig(BaseModel):
    """Per-turn orchestration settings."""

    serialize_turns: bool = Field(
        default=True,
        description="Serialize overlapping turns of the same conversation",
    )
    run_name: str = Field(
        default="whatsapp_response", description="Run name reported to tracing"
    )
    apology_message: str = Field(
        default="Sorry, I encountered an error. Please try again later.",
        description="Reply sent when the model call fails",
    )
    media_reply_message: str = Field(
        default="I can only respond to text messages for now.",
        description="Reply sent for attachments and empty messages",
    )


class FeedbackConfig(BaseModel):
    """Feedback detection and run correlation settings."""

    positive_patterns: list[str] | None = Field(
        default=None, description="Override the built-in positive patterns"
    )
    negative_patterns: list[str] | None = Field(
        default=None, description="Override the built-in negative patterns"
    )
    nudge_agent: bool = Field(
        default=False,
        description="Tell the model when the user turn looks like feedback",
    )
    correlator_max_entries: int = Field(
        default=10_000, ge=1, description="Conversations tracked per table"
    )
    correlator_ttl: timedelta = Field(
        default=timedelta(hours=24), description="Lifetime of a correlation entry"
    )


class TracingConfig(BaseModel):
    """LangSmith feedback and OpenTelemetry span settings."""

    enabled: bool = Field(default=False, description="Enable LangSmith runs/feedback")
    project: str = Field(default="default", description="LangSmith project name")
    api_key: str | None = Field(default=None, description="LangSmith API key")
    endpoint: str | None = Field(default=None, description="LangSmith API URL")

    otel_enabled: bool = Field(default=False, description="Export OTEL spans")
    otel_endpoint: str = Field(
        default="", description="OTLP HTTP traces endpoint"
    )
    service_name: str = Field(default="zapchat", description="OTEL service.name")


class WhatsAppConfig(BaseModel):
    """WhatsApp Cloud API transport settings."""

    base_url: str = Field(
        default="https://graph.facebook.com", description="Graph API base URL"
    )
    api_version: str = Field(default="v21.0", description="Graph API version")
    phone_number_id: str = Field(default="", description="Sender phone number id")
    access_token: str = Field(default="", description="Graph API access token")
    verify_token: str = Field(
        default="", description="Token echoed back during webhook verification"
    )
    timeout: timedelta = Field(
        default=timedelta(seconds=15), description="HTTP timeout for sends"
    )


class LoggingConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=True, description="JSON lines (True) or coloured dev output"
    )
