"""LLM Client Module: Tool-Calling Chat Completions
====================================================
Thin client for an OpenAI-compatible /chat/completions endpoint
(OpenAI, Azure OpenAI, or any compatible gateway).

Unlike a plain text completion, a detection run needs the full response:
the finish reason, the assistant text, and any tool calls the model
requested. complete_chat() returns all three as a ChatCompletion.

Exports:
    ChatClient     : Holds endpoint configuration; safe to share across
                     threads (no per-request state, plain requests calls).
    ChatOptions    : Structured output format, tools and tool policy.
    ChatCompletion : Parsed response (finish signal, text, tool calls).
    FinishSignal   : COMPLETED / TOOL_CALLS_REQUESTED / OTHER.
    system_message(), user_message(), assistant_message(), tool_message()
                   : Builders for OpenAI wire-format message dicts.

Transport failures are raised as ModelProviderError and never retried
here; callers decide whether to retry a whole run.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import requests

from phish_detector.core.errors import ModelProviderError

logger = logging.getLogger(__name__)


class FinishSignal(Enum):
    COMPLETED = "stop"
    TOOL_CALLS_REQUESTED = "tool_calls"
    OTHER = "other"

    @classmethod
    def from_reason(cls, reason: str | None) -> "FinishSignal":
        if reason == cls.COMPLETED.value:
            return cls.COMPLETED
        if reason == cls.TOOL_CALLS_REQUESTED.value:
            return cls.TOOL_CALLS_REQUESTED
        return cls.OTHER


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model. Arguments are raw JSON text."""
    id: str
    name: str
    arguments: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ChatCompletion:
    finish_signal: FinishSignal
    finish_reason: str | None = None
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class ChatOptions:
    response_format: dict[str, Any]
    tools: list[dict[str, Any]] = field(default_factory=list)
    parallel_tool_calls: bool = False
    tool_choice: str = "auto"


# ---------- MESSAGE BUILDERS ----------

def system_message(text: str) -> dict[str, Any]:
    return {"role": "system", "content": text}


def user_message(text: str) -> dict[str, Any]:
    return {"role": "user", "content": text}


def assistant_message(completion: ChatCompletion) -> dict[str, Any]:
    """Echo an assistant response (with its tool calls) back into history."""
    message: dict[str, Any] = {"role": "assistant", "content": completion.content}
    if completion.tool_calls:
        message["tool_calls"] = [call.to_wire() for call in completion.tool_calls]
    return message


def tool_message(tool_call_id: str, text: str) -> dict[str, Any]:
    return {"role": "tool", "tool_call_id": tool_call_id, "content": text}


# ---------- RESPONSE PARSING ----------

def parse_completion(payload: dict[str, Any]) -> ChatCompletion:
    """
    Convert a raw chat-completions JSON body into a ChatCompletion.

    Args:
        payload: Decoded JSON response body

    Returns:
        ChatCompletion with the first choice's finish reason, text and tool calls

    Raises:
        ModelProviderError: If the body has no usable choice or malformed tool calls
    """
    try:
        choice = payload["choices"][0]
        message = choice.get("message") or {}
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise ModelProviderError(f"Chat completion response has no choices: {e}") from e

    finish_reason = choice.get("finish_reason")
    tool_calls = []
    try:
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") or {}
            arguments = function.get("arguments", "")
            if not isinstance(arguments, str):
                # Some gateways send already-decoded arguments
                arguments = json.dumps(arguments)
            tool_calls.append(ToolCall(
                id=str(raw.get("id", "")),
                name=str(function.get("name", "")),
                arguments=arguments,
            ))
    except (TypeError, AttributeError) as e:
        raise ModelProviderError(f"Chat completion response has malformed tool calls: {e}") from e

    return ChatCompletion(
        finish_signal=FinishSignal.from_reason(finish_reason),
        finish_reason=finish_reason,
        content=message.get("content"),
        tool_calls=tuple(tool_calls),
    )


class ChatClient:
    """
    Client for one chat-completions deployment.

    Args:
        api_url: Full URL of the /chat/completions endpoint
        api_key: Provider API key
        model: Model (or deployment) name
        provider: "azure" sends the key as an api-key header,
                  anything else as a Bearer token
        temperature: Sampling temperature
        timeout: Per-request timeout in seconds (one model round)
    """

    def __init__(self, api_url: str, api_key: str, model: str,
                 provider: str = "openai", temperature: float = 0.0,
                 timeout: int = 30):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.provider = provider
        self.temperature = temperature
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        if self.provider == "azure":
            return {"api-key": self.api_key, "Content-Type": "application/json"}
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def build_payload(self, messages: list[dict[str, Any]], options: ChatOptions) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "response_format": options.response_format,
        }
        # parallel_tool_calls and tool_choice are only valid alongside tools
        if options.tools:
            payload["tools"] = options.tools
            payload["tool_choice"] = options.tool_choice
            payload["parallel_tool_calls"] = options.parallel_tool_calls
        return payload

    def complete_chat(self, messages: list[dict[str, Any]], options: ChatOptions) -> ChatCompletion:
        """
        Send the conversation so far and return the model's next step.

        Args:
            messages: Full message history in wire format
            options: Response format, tools and tool policy

        Returns:
            Parsed ChatCompletion

        Raises:
            ModelProviderError: On timeout, connection failure, non-2xx
                                status or an unparseable body
        """
        payload = self.build_payload(messages, options)

        try:
            response = requests.post(
                self.api_url, headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.warning(f"{self.model} timeout ({self.timeout}s)")
            raise ModelProviderError(f"Model request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{self.model} request failed: {e}")
            raise ModelProviderError(f"Model request failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after", "?")
            logger.warning(f"{self.model} rate limited (429), retry-after={retry_after}")
            raise ModelProviderError(f"Model provider rate limited the request (retry-after={retry_after})")

        if response.status_code >= 400:
            logger.error(f"{self.model} returned HTTP {response.status_code}: {response.text[:500]}")
            raise ModelProviderError(f"Model provider returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ModelProviderError("Model provider returned a non-JSON body") from e

        completion = parse_completion(body)
        logger.info(f"LLM response from {self.model}: finish_reason={completion.finish_reason}, "
                    f"tool_calls={len(completion.tool_calls)}")
        return completion
