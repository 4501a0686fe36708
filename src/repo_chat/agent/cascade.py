"""Ordered model cascade with bounded retries and exponential backoff."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from langchain_core.messages import HumanMessage
from openai import AuthenticationError, PermissionDeniedError

from repo_chat.config import CascadeConfig
from repo_chat.errors import BackendExhausted
from repo_chat.types import FALLBACK, CascadeResult

logger = logging.getLogger(__name__)

_NON_RETRYABLE_STATUS = {401, 403}


class ChatBackend(Protocol):
    """Anything that turns one prompt into text with a named model."""

    def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Return the model's reply (possibly empty)."""


class LangChainChatBackend:
    """Chat backend built on LangChain's OpenAI chat model, one client per model id."""

    def __init__(self, *, api_key: str | None = None, timeout: float = 60.0) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._clients: dict[tuple[str, float, int], Any] = {}

    def generate(
        self,
        model: str,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        llm = self._client(model, temperature, max_output_tokens)
        response = llm.invoke([HumanMessage(content=prompt)])
        return _message_text(response)

    def _client(self, model: str, temperature: float, max_output_tokens: int) -> Any:
        key = (model, temperature, max_output_tokens)
        client = self._clients.get(key)
        if client is None:
            from langchain_openai import ChatOpenAI

            kwargs: dict[str, Any] = {
                "model": model,
                "temperature": temperature,
                "max_tokens": max_output_tokens,
                "timeout": self._timeout,
                # Retries belong to the cascade, not the client.
                "max_retries": 0,
            }
            if self._api_key:
                kwargs["api_key"] = self._api_key
            client = ChatOpenAI(**kwargs)
            self._clients[key] = client
        return client


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content or "")


def is_non_retryable(exc: BaseException) -> bool:
    """Credential and permission failures will fail identically on every model."""

    if isinstance(exc, (AuthenticationError, PermissionDeniedError)):
        return True
    return getattr(exc, "status_code", None) in _NON_RETRYABLE_STATUS


class ModelCascade:
    """Tries each configured model in order until one returns non-empty text.

    State is an explicit (model index, attempt index) loop:
    - an exception is retried on the same model after
      `base_delay_seconds * 2 ** (retry - 1)` seconds, up to
      `attempts_per_model` attempts in total;
    - an empty reply moves straight to the next model;
    - a non-retryable error (bad credentials, permission denied) ends the
      cascade immediately;
    - with `deadline_seconds` set, a retry whose backoff would overrun the
      deadline is skipped in favour of the next model, and no attempt at all
      starts once the deadline has passed.

    `generate` never raises. When every model is exhausted it returns the
    caller's fallback text tagged with the `fallback` provenance.
    """

    def __init__(
        self,
        backend: ChatBackend | None,
        config: CascadeConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend = backend
        self.config = config or CascadeConfig()
        self._sleep = sleep
        self._clock = clock

    @property
    def models(self) -> list[str]:
        return list(self.config.models)

    def generate(
        self,
        prompt: str,
        fallback: str,
        *,
        temperature: float = 0.4,
        max_output_tokens: int = 4096,
    ) -> CascadeResult:
        if self.backend is None:
            logger.info("No generative backend configured; using fallback text")
            return CascadeResult(text=fallback, model=FALLBACK, attempts=0)

        try:
            return self._run(self.backend, prompt, temperature, max_output_tokens)
        except BackendExhausted as exc:
            logger.warning("Model cascade exhausted after %d attempts: %s", exc.attempts, exc)
            return CascadeResult(text=fallback, model=FALLBACK, attempts=exc.attempts)

    def _run(
        self,
        backend: ChatBackend,
        prompt: str,
        temperature: float,
        max_output_tokens: int,
    ) -> CascadeResult:
        started = self._clock()
        attempts = 0

        for model in self.config.models:
            for attempt in range(self.config.attempts_per_model):
                if self._deadline_passed(started):
                    raise BackendExhausted("deadline reached", attempts)
                if attempt > 0:
                    delay = self.config.base_delay_seconds * 2 ** (attempt - 1)
                    if self._would_overrun(started, delay):
                        logger.info("Skipping retry of %s: backoff would pass the deadline", model)
                        break
                    self._sleep(delay)

                attempts += 1
                try:
                    text = backend.generate(
                        model,
                        prompt,
                        temperature=temperature,
                        max_output_tokens=max_output_tokens,
                    )
                except Exception as exc:
                    if is_non_retryable(exc):
                        logger.error("Model %s rejected credentials: %s", model, exc)
                        raise BackendExhausted(
                            f"non-retryable error from {model}: {exc}", attempts
                        ) from exc
                    logger.warning(
                        "Model %s attempt %d/%d failed: %s",
                        model,
                        attempt + 1,
                        self.config.attempts_per_model,
                        exc,
                    )
                    continue

                text = (text or "").strip()
                if text:
                    logger.info("Model %s answered after %d attempts", model, attempts)
                    return CascadeResult(text=text, model=model, attempts=attempts)
                logger.warning("Model %s returned an empty response", model)
                break

        raise BackendExhausted("all models failed", attempts)

    def _deadline_passed(self, started: float) -> bool:
        deadline = self.config.deadline_seconds
        return deadline is not None and self._clock() - started >= deadline

    def _would_overrun(self, started: float, delay: float) -> bool:
        deadline = self.config.deadline_seconds
        if deadline is None:
            return False
        return (self._clock() - started) + delay > deadline
