"""Text-completion service with multi-provider support (mock, OpenAI, Anthropic, local, Cloudflare)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import aiohttp

from notifier.config import LLMConfig
from notifier.errors import CompletionServiceError, ValidationError

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, str]

ROLES = ("system", "user", "assistant")
CLOUDFLARE_API = "https://api.cloudflare.com/client/v4/accounts/{account}/ai/run/{model}"
CLOUDFLARE_GATEWAY = "https://gateway.ai.cloudflare.com/v1/{account}/{gateway}/workers-ai/{model}"

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass
class Completion:
    """Validated reply from a completion backend."""

    text: str = ""
    usage: Optional[Dict[str, int]] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Completion:
        """Build from a provider payload; missing or mistyped fields fall back to defaults."""
        if not isinstance(payload, Mapping):
            return cls()
        text = payload.get("response", payload.get("text"))
        usage = payload.get("usage")
        return cls(
            text=text if isinstance(text, str) else "",
            usage=_normalize_usage(usage) if isinstance(usage, Mapping) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"response": self.text}
        if self.usage:
            out["usage"] = self.usage
        return out


@dataclass
class ParsedReply:
    data: Dict[str, Any]


@dataclass
class UnparsableReply:
    raw: str

    def as_notification(self, kind: str = "email") -> Dict[str, str]:
        """Fallback draft when the model did not return the requested JSON."""
        return {
            "subject": "" if kind == "sms" else "Important notification",
            "body": self.raw or "Could not generate content",
        }


def parse_json_reply(text: str) -> Union[ParsedReply, UnparsableReply]:
    """Parse a model reply as a JSON object, tolerating Markdown code fences."""
    cleaned = _FENCE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Reply is not valid JSON (%d chars)", len(text or ""))
        return UnparsableReply(raw=text or "")
    if not isinstance(data, dict):
        return UnparsableReply(raw=text or "")
    return ParsedReply(data=data)


class TextCompletion(Protocol):
    """Generative-AI backend used by the digest engine and the AI routes."""

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        ...


def validate_messages(messages: Any) -> List[ChatMessage]:
    """Check a chat transcript shape: non-empty list of ``{role, content}`` dicts."""
    if not isinstance(messages, list) or not messages:
        raise ValidationError("At least one message is required")
    out: List[ChatMessage] = []
    for m in messages:
        if not isinstance(m, Mapping) or m.get("role") not in ROLES or not isinstance(m.get("content"), str):
            raise ValidationError("Each message needs a role (system/user/assistant) and string content")
        out.append({"role": m["role"], "content": m["content"]})
    return out


class CompletionService:
    """Chat completion against the configured provider.

    Every provider failure surfaces as :class:`CompletionServiceError`;
    no retries are attempted here.
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config
        self.provider = config.provider
        self.model = config.model

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        messages = validate_messages(list(messages))
        max_tokens = max_tokens or self.config.max_tokens
        temperature = self.config.temperature if temperature is None else temperature

        try:
            completion = await self._dispatch(messages, max_tokens, temperature)
        except CompletionServiceError:
            raise
        except Exception as e:
            logger.error("Completion via %s failed: %s", self.provider, e)
            raise CompletionServiceError(f"AI service error: {e}") from e

        logger.debug(
            "Completion via %s: %d chars, usage=%s",
            self.provider, len(completion.text), completion.usage,
        )
        return completion

    async def _dispatch(
        self, messages: List[ChatMessage], max_tokens: int, temperature: float
    ) -> Completion:
        if self.provider == "mock":
            return self._mock_completion(messages)
        elif self.provider == "openai":
            return await self._call_openai(messages, max_tokens, temperature)
        elif self.provider == "anthropic":
            return await self._call_anthropic(messages, max_tokens, temperature)
        elif self.provider == "local":
            return await self._call_openai(messages, max_tokens, temperature, base_url=self.config.base_url)
        elif self.provider == "cloudflare":
            return await self._call_cloudflare(messages, max_tokens, temperature)
        raise CompletionServiceError(f"Unknown AI provider {self.provider!r}")

    # ------------------------------------------------------------------
    # Provider implementations
    # ------------------------------------------------------------------

    async def _call_openai(
        self,
        messages: List[ChatMessage],
        max_tokens: int,
        temperature: float,
        base_url: Optional[str] = None,
    ) -> Completion:
        from openai import AsyncOpenAI

        if base_url:
            client = AsyncOpenAI(base_url=base_url, api_key=self.config.api_key or "ollama")
        else:
            client = AsyncOpenAI(api_key=self.config.api_key)
        resp = await client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=self.config.timeout_seconds,
        )
        usage = None
        if resp.usage is not None:
            usage = {
                "prompt_tokens": resp.usage.prompt_tokens,
                "completion_tokens": resp.usage.completion_tokens,
                "total_tokens": resp.usage.total_tokens,
            }
        return Completion(text=resp.choices[0].message.content or "", usage=usage)

    async def _call_anthropic(
        self, messages: List[ChatMessage], max_tokens: int, temperature: float
    ) -> Completion:
        from anthropic import AsyncAnthropic

        client = AsyncAnthropic(api_key=self.config.api_key)
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [m for m in messages if m["role"] != "system"]
        kwargs: Dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        resp = await client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=turns,
            timeout=self.config.timeout_seconds,
            **kwargs,
        )
        text = "".join(getattr(block, "text", "") for block in resp.content)
        usage = {
            "prompt_tokens": resp.usage.input_tokens,
            "completion_tokens": resp.usage.output_tokens,
            "total_tokens": resp.usage.input_tokens + resp.usage.output_tokens,
        }
        return Completion(text=text, usage=usage)

    async def _call_cloudflare(
        self, messages: List[ChatMessage], max_tokens: int, temperature: float
    ) -> Completion:
        """Workers AI REST API, optionally routed through an AI Gateway."""
        if not self.config.account_id or not self.config.api_key:
            raise CompletionServiceError("Cloudflare provider needs llm.account_id and llm.api_key")

        if self.config.gateway:
            url = CLOUDFLARE_GATEWAY.format(
                account=self.config.account_id, gateway=self.config.gateway, model=self.model
            )
        else:
            url = CLOUDFLARE_API.format(account=self.config.account_id, model=self.model)

        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        body = {"messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=body, headers=headers) as resp:
                payload = await resp.json(content_type=None)
                if resp.status >= 400 or not payload.get("success", True):
                    errors = payload.get("errors") if isinstance(payload, dict) else None
                    raise CompletionServiceError(
                        f"Workers AI returned HTTP {resp.status}: {errors or 'unknown error'}"
                    )
        return Completion.from_payload(payload.get("result", payload))

    @staticmethod
    def _mock_completion(messages: List[ChatMessage]) -> Completion:
        """Deterministic reply for development and tests (no network)."""
        last_user = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")
        lines = [line.strip() for line in last_user.splitlines() if line.strip()]
        preview = "\n".join(lines[:12])
        words = len(last_user.split())
        return Completion(
            text=f"[mock] Summary of {len(lines)} input line(s):\n{preview}",
            usage={"prompt_tokens": words, "completion_tokens": 0, "total_tokens": words},
        )


def _normalize_usage(usage: Mapping[str, Any]) -> Dict[str, int]:
    return {str(k): int(v) for k, v in usage.items() if isinstance(v, (int, float))}
