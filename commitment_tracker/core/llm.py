"""
Commitment Tracker — LLM Provider Abstraction.

Single public function `complete()` that routes to the configured provider.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, cohere, and gateway (any
OpenAI-compatible /chat/completions endpoint, called over raw HTTP).

With a ToolSpec, the provider is forced to answer through that tool and
`complete()` returns the tool arguments instead of text. Failures surface
as TransportFailure / MalformedResponse; nothing is retried.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from commitment_tracker.core.errors import MalformedResponse, TrackerError, TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    """A function the model must call; ``parameters`` is a JSON schema object."""

    name: str
    description: str
    parameters: dict

    def as_openai(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


# Type alias for provider implementations
_ProviderFn = Callable[[str, str, str, str, int, "ToolSpec | None"], Awaitable[Any]]

# ---------------------------------------------------------------------------
# Response cleaning
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


def parse_json_payload(raw_text: str) -> Any:
    """Parse JSON from model text, unwrapping a markdown code fence if present.

    Raises MalformedResponse if the result isn't valid JSON.
    """
    text = (raw_text or "").strip()
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse LLM response as JSON: %s — raw: '%s'", exc, raw_text[:500])
        raise MalformedResponse(f"Invalid AI response format: {exc}") from exc


def _decode_arguments(arguments: str | dict) -> dict:
    """Tool-call arguments arrive as a JSON string (OpenAI style) or a dict."""
    if isinstance(arguments, dict):
        return arguments
    try:
        return json.loads(arguments)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedResponse(f"Tool call arguments are not JSON: {exc}") from exc


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    tool: ToolSpec | None,
) -> Any:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    kwargs: dict = {}
    if tool is not None:
        kwargs["tools"] = [{
            "function_declarations": [{
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            }],
        }]
        kwargs["tool_config"] = {
            "function_calling_config": {"mode": "ANY", "allowed_function_names": [tool.name]},
        }

    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
        **kwargs,
    )
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )

    if tool is not None:
        for part in response.candidates[0].content.parts:
            call = part.function_call
            if call.name == tool.name:
                return type(call).to_dict(call).get("args", {})
    return response.text


async def _complete_anthropic(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    tool: ToolSpec | None,
) -> Any:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    kwargs: dict = {}
    if tool is not None:
        kwargs["tools"] = [{
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters,
        }]
        kwargs["tool_choice"] = {"type": "tool", "name": tool.name}

    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user_message}],
        **kwargs,
    )

    if tool is not None:
        for block in response.content:
            if block.type == "tool_use" and block.name == tool.name:
                return dict(block.input)
    return "".join(block.text for block in response.content if block.type == "text")


async def _complete_openai(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    tool: ToolSpec | None,
) -> Any:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    kwargs: dict = {}
    if tool is not None:
        kwargs["tools"] = [tool.as_openai()]
        kwargs["tool_choice"] = {"type": "function", "function": {"name": tool.name}}

    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
        **kwargs,
    )

    message = response.choices[0].message
    if tool is not None and message.tool_calls:
        return _decode_arguments(message.tool_calls[0].function.arguments)
    return message.content or ""


async def _complete_cohere(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    tool: ToolSpec | None,
) -> Any:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    kwargs: dict = {}
    if tool is not None:
        kwargs["tools"] = [tool.as_openai()]
        kwargs["tool_choice"] = "REQUIRED"

    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
        **kwargs,
    )

    if tool is not None and response.message.tool_calls:
        return _decode_arguments(response.message.tool_calls[0].function.arguments)
    return response.message.content[0].text


async def _complete_gateway(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int,
    tool: ToolSpec | None,
) -> Any:
    """POST to an OpenAI-compatible /chat/completions endpoint with a bearer key."""
    from commitment_tracker.config import settings

    payload: dict = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    }
    if tool is not None:
        payload["tools"] = [tool.as_openai()]
        payload["tool_choice"] = {"type": "function", "function": {"name": tool.name}}

    url = f"{settings.LLM_BASE_URL.rstrip('/')}/chat/completions"
    async with httpx.AsyncClient(timeout=settings.LLM_TIMEOUT_SECONDS) as client:
        response = await client.post(
            url,
            headers={"Authorization": f"Bearer {api_key}"},
            json=payload,
        )

    if not response.is_success:
        logger.error("AI API error: %d %s", response.status_code, response.text[:500])
        raise TransportFailure(f"AI API error: {response.status_code}")

    try:
        message = response.json()["choices"][0]["message"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise MalformedResponse(f"Unexpected AI response shape: {exc}") from exc

    tool_calls = message.get("tool_calls") or []
    if tool is not None and tool_calls:
        return _decode_arguments(tool_calls[0]["function"]["arguments"])
    return message.get("content") or ""


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
    "gateway":   (_complete_gateway,   "google/gemini-2.5-flash"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read env vars and return (provider_fn, model, api_key)."""
    from commitment_tracker.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton, populated on first call to complete()
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    user_message: str,
    max_tokens: int = 512,
    tool: ToolSpec | None = None,
) -> Any:
    """Send a prompt to the configured LLM provider.

    Without ``tool``, returns the response text. With ``tool``, returns
    the parsed tool arguments (if the model answered in plain text
    instead, that text is parsed as JSON).

    Raises TransportFailure on API/network errors and MalformedResponse
    on unparseable output.
    """
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    try:
        result = await _provider_fn(_api_key, _model, system, user_message, max_tokens, tool)
    except TrackerError:
        raise
    except Exception as exc:
        logger.error("LLM call failed: %s", exc)
        raise TransportFailure(str(exc)) from exc

    if tool is not None and isinstance(result, str):
        logger.warning("Model answered without calling '%s'; parsing text", tool.name)
        result = parse_json_payload(result)
    return result
