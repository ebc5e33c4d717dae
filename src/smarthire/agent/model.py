"""Language model clients."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import anthropic

from smarthire.agent.messages import Message, Role, ToolCall
from smarthire.agent.registry import TOOLS, ToolSpec
from smarthire.errors import ProviderFailure

logger = logging.getLogger(__name__)


@dataclass
class ModelReply:
    """One model completion: final text and/or requested tool calls."""
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


class ModelClient(ABC):
    """A chat model that can request tool calls."""

    @abstractmethod
    async def complete(self, transcript: list[Message], tools: list[ToolSpec]) -> ModelReply:
        """Run the model over the transcript.

        Args:
            transcript: Full session transcript, system briefing first.
            tools: Tools the model may call; empty means none.

        Raises:
            ProviderFailure: on any transport or provider error.
        """
        ...


def to_anthropic_messages(transcript: list[Message]) -> tuple[str, list[dict]]:
    """Convert a transcript to (system_prompt, messages) for the Messages API.

    Consecutive tool results are folded into a single user message, which
    is what the API expects after an assistant turn with several tool_use
    blocks.
    """
    system_prompt = ""
    messages: list[dict] = []

    for msg in transcript:
        if msg.role == Role.SYSTEM:
            system_prompt = msg.content
        elif msg.role == Role.USER:
            previous = messages[-1] if messages else None
            if previous and previous["role"] == "user" and isinstance(previous["content"], list):
                # Follows tool results left over from an interrupted turn
                previous["content"].append({"type": "text", "text": msg.content})
            else:
                messages.append({"role": "user", "content": msg.content})
        elif msg.role == Role.ASSISTANT:
            blocks: list[dict] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": call.arguments,
                })
            messages.append({"role": "assistant", "content": blocks or msg.content})
        elif msg.role == Role.TOOL:
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            if msg.is_error:
                block["is_error"] = True
            previous = messages[-1] if messages else None
            if previous and previous["role"] == "user" and isinstance(previous["content"], list):
                previous["content"].append(block)
            else:
                messages.append({"role": "user", "content": [block]})

    return system_prompt, messages


def _has_tool_blocks(transcript: list[Message]) -> bool:
    return any(m.role == Role.TOOL or m.tool_calls for m in transcript)


class AnthropicModelClient(ModelClient):
    """Anthropic Claude through the async Messages API with native tool calling."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Get or create Anthropic client (reads ANTHROPIC_API_KEY)."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic()
        return self._client

    async def complete(self, transcript: list[Message], tools: list[ToolSpec]) -> ModelReply:
        client = self._get_client()
        system_prompt, messages = to_anthropic_messages(transcript)

        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = [tool.to_anthropic_format() for tool in tools]
        elif _has_tool_blocks(transcript):
            # The API rejects tool_use history without tool definitions, so
            # declare them but forbid their use
            kwargs["tools"] = [tool.to_anthropic_format() for tool in TOOLS]
            kwargs["tool_choice"] = {"type": "none"}

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise ProviderFailure("Model request failed", details=str(e)) from e

        text = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text += block.text
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=block.input,
                ))

        logger.debug(
            f"Model replied: stop_reason={response.stop_reason} "
            f"tool_calls={[c.name for c in tool_calls]}"
        )
        return ModelReply(text=text, tool_calls=tool_calls)
