"""
LLM Gateway

Chat-style access to a vision-capable model with tool calling. Each provider
client turns a Transcript plus tool declarations into its own request format
and normalizes the reply into an AssistantTurn.
"""

import json
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Sequence

from loguru import logger

from bookscope.errors import LLMError, ProtocolViolation
from bookscope.llm.images import parse_data_uri
from bookscope.llm.tools import ToolChoice, ToolSchema
from bookscope.llm.transcript import (
    AssistantTurn,
    SystemTurn,
    ToolInvocation,
    ToolResultTurn,
    Transcript,
    UserImageTurn,
)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    MOCK = "mock"


DEFAULT_MODELS = {
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.MOCK: "mock",
}


class ChatGateway(ABC):
    """Abstract base class for LLM gateways."""

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        transcript: Transcript,
        tools: Sequence[ToolSchema] = (),
        tool_choice: Optional[ToolChoice] = None,
    ) -> AssistantTurn:
        """Run one round-trip over `transcript` and return the assistant turn."""
        pass

    async def close(self):
        """Release provider connections. No-op for gateways without a client."""
        pass


def _decode_arguments(name: str, raw: Optional[str]) -> dict[str, Any]:
    """Parse a JSON argument string, rejecting anything but an object."""
    try:
        arguments = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ProtocolViolation(f"Arguments for '{name}' are not valid JSON", detail=str(e)) from e
    if not isinstance(arguments, dict):
        raise ProtocolViolation(f"Arguments for '{name}' must be a JSON object")
    return arguments


class OpenAIGateway(ChatGateway):
    """
    OpenAI chat completions gateway.

    Images are sent as `image_url` parts; tools as function declarations.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODELS[LLMProvider.OPENAI],
        temperature: Optional[float] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client = None

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            try:
                import openai
                self._client = openai.AsyncOpenAI(api_key=self.api_key)
            except ImportError as e:
                raise ImportError(
                    "openai package required. Install with: pip install openai"
                ) from e
        return self._client

    async def close(self):
        """Close the OpenAI client if one was created."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    @staticmethod
    def to_messages(transcript: Transcript) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in transcript:
            if isinstance(turn, SystemTurn):
                messages.append({"role": "system", "content": turn.content})
            elif isinstance(turn, UserImageTurn):
                parts: list[dict[str, Any]] = []
                if turn.text:
                    parts.append({"type": "text", "text": turn.text})
                parts.append({
                    "type": "image_url",
                    "image_url": {"url": turn.image.url, "detail": turn.image.detail},
                })
                messages.append({"role": "user", "content": parts})
            elif isinstance(turn, AssistantTurn):
                message: dict[str, Any] = {"role": "assistant", "content": turn.text}
                if turn.tool_invocations:
                    message["tool_calls"] = [
                        {
                            "id": invocation.id,
                            "type": "function",
                            "function": {
                                "name": invocation.name,
                                "arguments": json.dumps(invocation.arguments),
                            },
                        }
                        for invocation in turn.tool_invocations
                    ]
                messages.append(message)
            elif isinstance(turn, ToolResultTurn):
                messages.append({
                    "role": "tool",
                    "tool_call_id": turn.invocation_id,
                    "content": turn.content,
                })
        return messages

    @staticmethod
    def to_tools(tools: Sequence[ToolSchema]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters_schema(),
                },
            }
            for tool in tools
        ]

    @staticmethod
    def to_assistant_turn(message) -> AssistantTurn:
        invocations = []
        for tool_call in getattr(message, "tool_calls", None) or []:
            if tool_call.type != "function" or tool_call.function is None:
                raise ProtocolViolation(f"Unsupported tool call type: {tool_call.type}")
            name = tool_call.function.name
            invocations.append(
                ToolInvocation(
                    id=tool_call.id,
                    name=name,
                    arguments=_decode_arguments(name, tool_call.function.arguments),
                )
            )
        return AssistantTurn(text=message.content, tool_invocations=tuple(invocations))

    async def complete(
        self,
        transcript: Transcript,
        tools: Sequence[ToolSchema] = (),
        tool_choice: Optional[ToolChoice] = None,
    ) -> AssistantTurn:
        client = self._get_client()

        request: dict[str, Any] = {
            "model": self.model,
            "messages": self.to_messages(transcript),
        }
        if tools:
            request["tools"] = self.to_tools(tools)
        if tool_choice is not None:
            request["tool_choice"] = {"type": "function", "function": {"name": tool_choice.name}}
        if self.temperature is not None:
            request["temperature"] = self.temperature

        try:
            response = await client.chat.completions.create(**request)
        except Exception as e:
            logger.error(f"OpenAI completion failed: {e}")
            raise LLMError("OpenAI", detail=str(e)) from e

        if not response.choices:
            raise ProtocolViolation("OpenAI response contained no choices")
        return self.to_assistant_turn(response.choices[0].message)


class AnthropicGateway(ChatGateway):
    """
    Anthropic messages API gateway.

    Tool results are sent back as `tool_result` blocks inside a user message;
    consecutive results share one message.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODELS[LLMProvider.ANTHROPIC],
        max_tokens: int = 4096,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = None

    def _get_client(self):
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            try:
                import anthropic
                self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
            except ImportError as e:
                raise ImportError(
                    "anthropic package required. Install with: pip install anthropic"
                ) from e
        return self._client

    async def close(self):
        """Close the Anthropic client if one was created."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    @staticmethod
    def _image_block(turn: UserImageTurn) -> dict[str, Any]:
        if turn.image.is_inline:
            media_type, data = parse_data_uri(turn.image.url)
            source = {"type": "base64", "media_type": media_type, "data": data}
        else:
            source = {"type": "url", "url": turn.image.url}
        return {"type": "image", "source": source}

    @classmethod
    def to_messages(cls, transcript: Transcript) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for turn in transcript:
            if isinstance(turn, SystemTurn):
                continue
            if isinstance(turn, UserImageTurn):
                blocks = [cls._image_block(turn)]
                if turn.text:
                    blocks.append({"type": "text", "text": turn.text})
                messages.append({"role": "user", "content": blocks})
            elif isinstance(turn, AssistantTurn):
                blocks = []
                if turn.text:
                    blocks.append({"type": "text", "text": turn.text})
                for invocation in turn.tool_invocations:
                    blocks.append({
                        "type": "tool_use",
                        "id": invocation.id,
                        "name": invocation.name,
                        "input": invocation.arguments,
                    })
                messages.append({"role": "assistant", "content": blocks})
            elif isinstance(turn, ToolResultTurn):
                block = {
                    "type": "tool_result",
                    "tool_use_id": turn.invocation_id,
                    "content": turn.content,
                }
                previous = messages[-1] if messages else None
                if (
                    previous
                    and previous["role"] == "user"
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    messages.append({"role": "user", "content": [block]})
        return messages

    @staticmethod
    def to_tools(tools: Sequence[ToolSchema]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters_schema(),
            }
            for tool in tools
        ]

    @staticmethod
    def to_assistant_turn(response) -> AssistantTurn:
        texts = []
        invocations = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                if not isinstance(block.input, dict):
                    raise ProtocolViolation(f"Arguments for '{block.name}' must be an object")
                invocations.append(ToolInvocation(id=block.id, name=block.name, arguments=block.input))
        text = "\n".join(texts) if texts else None
        return AssistantTurn(text=text, tool_invocations=tuple(invocations))

    async def complete(
        self,
        transcript: Transcript,
        tools: Sequence[ToolSchema] = (),
        tool_choice: Optional[ToolChoice] = None,
    ) -> AssistantTurn:
        client = self._get_client()

        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": self.to_messages(transcript),
        }
        if transcript.system_prompt:
            request["system"] = transcript.system_prompt
        if tools:
            request["tools"] = self.to_tools(tools)
        if tool_choice is not None:
            request["tool_choice"] = {"type": "tool", "name": tool_choice.name}

        try:
            response = await client.messages.create(**request)
        except Exception as e:
            logger.error(f"Anthropic completion failed: {e}")
            raise LLMError("Anthropic", detail=str(e)) from e

        return self.to_assistant_turn(response)


class MockGateway(ChatGateway):
    """
    Stand-in used when no API key is configured.

    Never calls tools, so every detection ends in the free-text outcome.
    """

    model = "mock"

    def __init__(self, reply: str = "No LLM provider is configured, so no books could be detected."):
        self.reply = reply

    async def complete(
        self,
        transcript: Transcript,
        tools: Sequence[ToolSchema] = (),
        tool_choice: Optional[ToolChoice] = None,
    ) -> AssistantTurn:
        return AssistantTurn(text=self.reply)


def create_gateway(
    provider: LLMProvider = LLMProvider.OPENAI,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> ChatGateway:
    """
    Factory function to create a ChatGateway.

    Falls back to MockGateway when no key is available.
    """
    provider = LLMProvider(provider)
    gateway: Optional[ChatGateway] = None

    if provider == LLMProvider.OPENAI:
        key = api_key or os.environ.get("OPENAI_API_KEY")
        if key:
            gateway = OpenAIGateway(api_key=key, model=model or DEFAULT_MODELS[provider])

    elif provider == LLMProvider.ANTHROPIC:
        key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if key:
            gateway = AnthropicGateway(api_key=key, model=model or DEFAULT_MODELS[provider])

    if gateway is None:
        if provider != LLMProvider.MOCK:
            logger.warning(f"No API key found for provider {provider.value}. Using MockGateway.")
        gateway = MockGateway()

    return gateway
